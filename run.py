"""Local development entry point for the referral portal.

Usage:
    python run.py

Reads SECRET_KEY, DATABASE_URL, JWT_SECRET and friends from .env.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before the config classes read os.environ

from referral_portal import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
