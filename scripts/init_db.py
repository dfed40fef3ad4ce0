#!/usr/bin/env python3
"""Create the NailStudio tables and the default settings row."""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from nailstudio import create_app
from nailstudio.extensions import db
from nailstudio.models import AppSettings


def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        if db.session.get(AppSettings, AppSettings.MAIN_ID) is None:
            db.session.add(AppSettings(settings_id=AppSettings.MAIN_ID, salon_name="NailStudio AI"))
            db.session.commit()
        print("✅ Database tables initialized successfully")


if __name__ == "__main__":
    init_database()
