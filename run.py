"""Local development entry point.

Usage:
    python run.py

Stripe webhooks can be forwarded to the dev server with:
    stripe listen --forward-to localhost:5001/stripe/webhooks
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from ridephotos import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
