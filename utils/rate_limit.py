"""Shared slowapi limiter for the login and sign-up endpoints."""
import os

from dotenv import load_dotenv
from slowapi import Limiter
from slowapi.util import get_remote_address

load_dotenv()

# In-memory storage; limits reset when the process restarts
LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "10/minute")

limiter = Limiter(key_func=get_remote_address)
