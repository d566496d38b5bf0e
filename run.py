#!/usr/bin/env python3
"""
Run script for the Event Planner web app.
"""
import os

from evplanner.app import app

if __name__ == "__main__":
    print("✅ Starting Flask app...")
    app.run(debug=bool(os.getenv("FLASK_DEBUG")), port=int(os.getenv("PORT", "8080")))
