"""
Single import point for the storage layer used by routes and scripts.
"""
from core.db.base import dialect, execute, fetch_all, fetch_count, fetch_one, get_conn, utcnow_iso
from core.db.pagination import clamp_page_args, paginate
from core.db.schema import clear_all_tables, ensure_admin_from_env, init_db
from core.db.settings_store import get_public_site_settings, get_site_setting, set_site_setting
from core.db.users import *  # noqa: F401,F403
from core.db.blog import *  # noqa: F401,F403
from core.db.portfolio import *  # noqa: F401,F403
from core.db.flights import *  # noqa: F401,F403
