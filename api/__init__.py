"""The web service of the marine spatial planning tool"""
from .main import app
