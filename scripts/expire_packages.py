#!/usr/bin/env python3
"""Mark client packages past their expiry date as Expirado.

Meant to run once a day from cron.
"""
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from nailstudio import create_app
from nailstudio.extensions import db
from nailstudio.packages import expire_overdue


def expire_packages(today=None):
    app = create_app()
    with app.app_context():
        expired = expire_overdue(today or date.today())
        db.session.commit()
        print(f"✅ {expired} package(s) marked as expired")
        return expired


if __name__ == "__main__":
    expire_packages()
