"""
Task Board Development Server
"""
import os

from app import create_app
from models import db

app = create_app()

if __name__ == "__main__":
    with app.app_context():
        db.create_all()
    print("🚀 Starting task board...")
    app.run(
        host='0.0.0.0',
        port=int(os.getenv("PORT", "5000")),
        debug=os.getenv("FLASK_ENV") == "development",
        use_reloader=True
    )
