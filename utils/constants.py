"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Content types used by moderation records
- Default usergroups seeded on install

(Prevents hardcoding across the codebase)
"""

# ============================================================
# AUTH
# ============================================================

LOGIN_FAILED = "Wrong login or password."
MISSED_CAPTCHA_SOLUTION = "Too many login attempts. Please fill in the captcha."
WRONG_CAPTCHA_SOLUTION = "Wrong captcha solution. Please try again."
TOO_MANY_ATTEMPTS = "Too many login attempts from your address. Please wait 5 minutes."
ALREADY_LOGGED_IN = "You are already logged in."
REDIRECT_INVALID = "Redirect target must be a path on this site."
EMAIL_UNKNOWN = "No account uses this email."

EXPIRED_TOKEN = "Password reset link has expired. Please request a new one."
BROKEN_TOKEN = "Password reset link is broken. Please request a new one."
BAD_PASSWORD = "Password must be at least 8 characters long and contain letters and digits."

# ============================================================
# REGISTRATION
# ============================================================

NICK_INVALID = "Nick contains invalid characters or has a wrong length."
NICK_BUSY = "This nick is already taken."
EMAIL_INVALID = "Email address is not valid."
EMAIL_BUSY = "This email is already registered."

# ============================================================
# ALBUMS & UPLOADS
# ============================================================

ALBUM_DEFAULT_NAME = "No name"
ALBUM_TITLE_WITH_USER = "{album} ({username})"
ALBUMS_TITLE_WITH_USER = "Album ({username})"
BREADCRUMB_ALBUMS = "Albums"

ERR_INVALID_EXT = "File '{file_name}' has a not allowed extension."
ERR_MAX_SIZE = "File '{file_name}' is too big. Max size is {max_size_kb} KB."
ERR_UPLOAD = "Error uploading file '{file_name}'."
ERR_BAD_IMAGE = "File '{file_name}' is not a valid image."
ABORT_CONFIRM = "Uploading is not finished. Abort?"

PROGRESS_COMPRESSING = "compressing..."

# ============================================================
# DIALOGS
# ============================================================

DIALOG_TO_SELF = "You can not send messages to yourself."
DIALOG_EMPTY_MESSAGE = "Message text is empty."
DIALOG_UNKNOWN_RECIPIENT = "Recipient not found."

# ============================================================
# CONTENT TYPES (moderation sources)
# ============================================================

CONTENT_TYPE_DIALOG_MESSAGE = 1
CONTENT_TYPE_MEDIA = 2

# ============================================================
# USERGROUPS
# ============================================================

DEFAULT_USERGROUPS = [
    {"short_name": "administrators", "settings": {"can_use_admin_panel": True}},
    {"short_name": "members", "settings": {}},
    {"short_name": "guests", "settings": {"can_create_albums": False, "can_send_messages": False}},
    {"short_name": "banned", "settings": {"can_create_albums": False, "can_send_messages": False}},
]

ADMIN_GROUP = "administrators"

# Image extensions the uploader may shrink before sending
CLIENT_RESIZABLE_EXTENSIONS = ("bmp", "jpg", "jpeg", "png")

# Max parallel uploads from one uploader
UPLOAD_CONCURRENCY = 4
