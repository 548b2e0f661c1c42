# timebill/config.py

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY')

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///timebill.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.getenv('GOOGLE_CLIENT_SECRET')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # How far back the weekly report reads entries (this week + last week)
    STATS_LOOKBACK_DAYS = int(os.getenv('STATS_LOOKBACK_DAYS', 14))
