"""
Flask extensions shared by the app factory and the blueprints.
"""

from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Keyed on the socket address. Proxy headers only count once the factory
# wraps the app in ProxyFix (TRUSTED_PROXIES > 0).
# The app-wide limit comes from RATELIMIT_APPLICATION in the app config
limiter = Limiter(key_func=get_remote_address)
cors = CORS()
