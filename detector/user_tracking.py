"""
Anonymous session tracking
Each browser gets a session id without registration; jobs and history hang off it.
"""

import secrets
import string
import time

COOKIE_NAME = 'analysis_session_id'
_BASE36 = string.digits + string.ascii_lowercase


def generate_session_id():
    """session_<epoch ms>_<9 random base36 chars>"""
    suffix = ''.join(secrets.choice(_BASE36) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


def get_session_id(request):
    """Get the analysis session id from cookie/session, creating one if needed"""
    session_id = request.COOKIES.get(COOKIE_NAME)
    if not session_id:
        session_id = request.session.get(COOKIE_NAME)
    if not session_id:
        session_id = generate_session_id()
    session_id = session_id[:64]
    request.session[COOKIE_NAME] = session_id
    return session_id


def set_session_cookie(response, session_id):
    """Set cookie for session tracking"""
    response.set_cookie(
        COOKIE_NAME,
        session_id,
        max_age=365*24*60*60,  # 1 year
        httponly=True,
        samesite='Lax'
    )
    return response
