"""
Schema and migration helpers (SQLite and Postgres).
"""
from __future__ import annotations

import logging
import os

from core.db.base import dialect, get_conn
from core.db.users import create_user, get_user_by_email, hash_password

log = logging.getLogger("site.db")

# Column type for surrogate keys differs per backend; everything else is portable.
_PK = {
    "sqlite": "INTEGER PRIMARY KEY AUTOINCREMENT",
    "postgres": "SERIAL PRIMARY KEY",
}

TABLES = [
    (
        "users",
        """
        CREATE TABLE IF NOT EXISTS users(
            id {pk},
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            display_name TEXT,
            role TEXT NOT NULL DEFAULT 'admin',
            active INTEGER NOT NULL DEFAULT 1,
            last_login_at TEXT,
            created_at TEXT NOT NULL
        )
        """,
    ),
    (
        "sessions",
        """
        CREATE TABLE IF NOT EXISTS sessions(
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            last_seen_at TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "blog_categories",
        """
        CREATE TABLE IF NOT EXISTS blog_categories(
            id {pk},
            name TEXT NOT NULL UNIQUE,
            slug TEXT NOT NULL UNIQUE,
            description TEXT,
            color TEXT,
            post_count INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """,
    ),
    (
        "blog_tags",
        """
        CREATE TABLE IF NOT EXISTS blog_tags(
            id {pk},
            name TEXT NOT NULL UNIQUE,
            slug TEXT NOT NULL UNIQUE,
            post_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
        """,
    ),
    (
        "blog_posts",
        """
        CREATE TABLE IF NOT EXISTS blog_posts(
            id {pk},
            title TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            excerpt TEXT,
            content TEXT NOT NULL,
            content_html TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft'
                CHECK (status IN ('draft', 'published', 'archived')),
            featured INTEGER NOT NULL DEFAULT 0,
            featured_image_url TEXT,
            meta_title TEXT,
            meta_description TEXT,
            meta_keywords TEXT,
            reading_time INTEGER,
            word_count INTEGER,
            view_count INTEGER NOT NULL DEFAULT 0,
            author_id INTEGER,
            published_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY(author_id) REFERENCES users(id) ON DELETE SET NULL
        )
        """,
    ),
    (
        "blog_post_categories",
        """
        CREATE TABLE IF NOT EXISTS blog_post_categories(
            post_id INTEGER NOT NULL,
            category_id INTEGER NOT NULL,
            PRIMARY KEY (post_id, category_id),
            FOREIGN KEY(post_id) REFERENCES blog_posts(id) ON DELETE CASCADE,
            FOREIGN KEY(category_id) REFERENCES blog_categories(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "blog_post_tags",
        """
        CREATE TABLE IF NOT EXISTS blog_post_tags(
            post_id INTEGER NOT NULL,
            tag_id INTEGER NOT NULL,
            PRIMARY KEY (post_id, tag_id),
            FOREIGN KEY(post_id) REFERENCES blog_posts(id) ON DELETE CASCADE,
            FOREIGN KEY(tag_id) REFERENCES blog_tags(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "project_categories",
        """
        CREATE TABLE IF NOT EXISTS project_categories(
            id {pk},
            name TEXT NOT NULL UNIQUE,
            slug TEXT NOT NULL UNIQUE,
            description TEXT,
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """,
    ),
    (
        "project_technologies",
        """
        CREATE TABLE IF NOT EXISTS project_technologies(
            id {pk},
            name TEXT NOT NULL UNIQUE,
            slug TEXT NOT NULL UNIQUE,
            category TEXT,
            website_url TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """,
    ),
    (
        "portfolio_projects",
        """
        CREATE TABLE IF NOT EXISTS portfolio_projects(
            id {pk},
            title TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            short_description TEXT NOT NULL,
            full_description TEXT,
            content TEXT,
            content_html TEXT,
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'archived', 'private')),
            featured INTEGER NOT NULL DEFAULT 0,
            project_type TEXT NOT NULL
                CHECK (project_type IN ('web', 'mobile', 'desktop', 'api', 'library', 'other')),
            client_name TEXT,
            my_role TEXT,
            team_size INTEGER,
            live_url TEXT,
            github_url TEXT,
            featured_image_url TEXT,
            gallery_images TEXT,
            view_count INTEGER NOT NULL DEFAULT 0,
            start_date TEXT,
            end_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
    ),
    (
        "project_project_categories",
        """
        CREATE TABLE IF NOT EXISTS project_project_categories(
            project_id INTEGER NOT NULL,
            category_id INTEGER NOT NULL,
            PRIMARY KEY (project_id, category_id),
            FOREIGN KEY(project_id) REFERENCES portfolio_projects(id) ON DELETE CASCADE,
            FOREIGN KEY(category_id) REFERENCES project_categories(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "project_project_technologies",
        """
        CREATE TABLE IF NOT EXISTS project_project_technologies(
            project_id INTEGER NOT NULL,
            technology_id INTEGER NOT NULL,
            PRIMARY KEY (project_id, technology_id),
            FOREIGN KEY(project_id) REFERENCES portfolio_projects(id) ON DELETE CASCADE,
            FOREIGN KEY(technology_id) REFERENCES project_technologies(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "skills",
        """
        CREATE TABLE IF NOT EXISTS skills(
            id {pk},
            name TEXT NOT NULL UNIQUE,
            category TEXT NOT NULL,
            proficiency_level INTEGER
                CHECK (proficiency_level BETWEEN 1 AND 5),
            years_experience DOUBLE PRECISION,
            description TEXT,
            priority_level TEXT NOT NULL DEFAULT 'medium',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
    ),
    (
        "project_skills",
        """
        CREATE TABLE IF NOT EXISTS project_skills(
            project_id INTEGER NOT NULL,
            skill_id INTEGER NOT NULL,
            usage_level TEXT NOT NULL DEFAULT 'primary',
            PRIMARY KEY (project_id, skill_id),
            FOREIGN KEY(project_id) REFERENCES portfolio_projects(id) ON DELETE CASCADE,
            FOREIGN KEY(skill_id) REFERENCES skills(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "testimonials",
        """
        CREATE TABLE IF NOT EXISTS testimonials(
            id {pk},
            client_name TEXT NOT NULL,
            client_position TEXT,
            client_company TEXT,
            project_id INTEGER,
            testimonial_text TEXT NOT NULL,
            rating INTEGER CHECK (rating BETWEEN 1 AND 5),
            date_given TEXT NOT NULL,
            permission_to_display INTEGER NOT NULL DEFAULT 1,
            featured INTEGER NOT NULL DEFAULT 0,
            work_relationship TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY(project_id) REFERENCES portfolio_projects(id) ON DELETE SET NULL
        )
        """,
    ),
    (
        "work_experience",
        """
        CREATE TABLE IF NOT EXISTS work_experience(
            id {pk},
            company_name TEXT NOT NULL,
            job_title TEXT NOT NULL,
            employment_type TEXT NOT NULL
                CHECK (employment_type IN ('full_time', 'part_time', 'contract', 'internship', 'freelance')),
            location TEXT,
            is_remote INTEGER NOT NULL DEFAULT 0,
            description TEXT,
            achievements TEXT,
            technologies_used TEXT,
            start_date TEXT NOT NULL,
            end_date TEXT,
            is_current INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
        """,
    ),
    (
        "education",
        """
        CREATE TABLE IF NOT EXISTS education(
            id {pk},
            institution_name TEXT NOT NULL,
            degree_type TEXT NOT NULL,
            degree_name TEXT NOT NULL,
            field_of_study TEXT,
            start_date TEXT NOT NULL,
            end_date TEXT,
            is_current INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
        """,
    ),
    (
        "airports",
        """
        CREATE TABLE IF NOT EXISTS airports(
            id {pk},
            iata_code TEXT NOT NULL UNIQUE,
            icao_code TEXT,
            name TEXT NOT NULL,
            city TEXT NOT NULL,
            country TEXT NOT NULL,
            country_code TEXT NOT NULL DEFAULT 'XX',
            latitude DOUBLE PRECISION,
            longitude DOUBLE PRECISION,
            timezone TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            has_visited INTEGER NOT NULL DEFAULT 0,
            visit_count INTEGER NOT NULL DEFAULT 0,
            first_visit_date TEXT,
            last_visit_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
    ),
    (
        "trips",
        """
        CREATE TABLE IF NOT EXISTS trips(
            id {pk},
            name TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            blog_post_id INTEGER,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY(blog_post_id) REFERENCES blog_posts(id) ON DELETE SET NULL
        )
        """,
    ),
    (
        "flights",
        """
        CREATE TABLE IF NOT EXISTS flights(
            id {pk},
            flight_number TEXT,
            airline_code TEXT,
            airline_name TEXT,
            aircraft_type TEXT,
            departure_airport_id INTEGER NOT NULL,
            arrival_airport_id INTEGER NOT NULL,
            departure_time TEXT NOT NULL,
            arrival_time TEXT NOT NULL,
            flight_duration INTEGER,
            distance_km DOUBLE PRECISION,
            seat_number TEXT,
            class TEXT CHECK (class IN ('economy', 'premium_economy', 'business', 'first')),
            notes TEXT,
            photos TEXT,
            trip_purpose TEXT,
            is_favorite INTEGER NOT NULL DEFAULT 0,
            flight_status TEXT NOT NULL DEFAULT 'completed'
                CHECK (flight_status IN ('booked', 'completed', 'cancelled', 'delayed')),
            blog_post_id INTEGER,
            trip_id INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY(departure_airport_id) REFERENCES airports(id) ON DELETE CASCADE,
            FOREIGN KEY(arrival_airport_id) REFERENCES airports(id) ON DELETE CASCADE,
            FOREIGN KEY(blog_post_id) REFERENCES blog_posts(id) ON DELETE SET NULL,
            FOREIGN KEY(trip_id) REFERENCES trips(id) ON DELETE SET NULL
        )
        """,
    ),
    (
        "site_settings",
        """
        CREATE TABLE IF NOT EXISTS site_settings(
            key TEXT PRIMARY KEY,
            value TEXT,
            is_public INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL
        )
        """,
    ),
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_blog_posts_status_published ON blog_posts(status, published_at)",
    "CREATE INDEX IF NOT EXISTS idx_portfolio_projects_status ON portfolio_projects(status, featured)",
    "CREATE INDEX IF NOT EXISTS idx_flights_departure_time ON flights(departure_time)",
    "CREATE INDEX IF NOT EXISTS idx_flights_trip_id ON flights(trip_id)",
    "CREATE INDEX IF NOT EXISTS idx_trips_dates ON trips(start_date, end_date)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at)",
]

# Child tables first, so DELETE order respects foreign keys.
TABLE_NAMES_CHILD_FIRST = [name for name, _ in reversed(TABLES)]


def init_db() -> None:
    """Create every table and index if they don't exist, then seed the admin account."""
    pk = _PK[dialect()]
    conn = get_conn()
    cur = conn.cursor()

    for _name, ddl in TABLES:
        cur.execute(ddl.format(pk=pk))
    for ddl in INDEXES:
        cur.execute(ddl)

    conn.commit()
    conn.close()

    ensure_admin_from_env()


def ensure_admin_from_env() -> None:
    """
    Optionally seed/update an admin account from environment variables.
    Set ADMIN_EMAIL and ADMIN_PASSWORD before startup to use.
    """
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")

    if not admin_email or not admin_password:
        return

    existing = get_user_by_email(admin_email)
    if existing:
        conn = get_conn()
        cur = conn.cursor()
        cur.execute(
            "UPDATE users SET role='admin', active=1, password_hash=? WHERE email=?",
            (hash_password(admin_password), admin_email.strip().lower()),
        )
        conn.commit()
        conn.close()
        log.info("Admin account refreshed from environment (%s)", admin_email)
        return

    create_user(admin_email, admin_password, role="admin")
    log.info("Admin account created from environment (%s)", admin_email)


def clear_all_tables() -> None:
    """Delete every row from every table (used by tests and the seed script's --reset)."""
    conn = get_conn()
    cur = conn.cursor()
    for name in TABLE_NAMES_CHILD_FIRST:
        cur.execute(f"DELETE FROM {name}")
    conn.commit()
    conn.close()


__all__ = [
    "TABLES",
    "INDEXES",
    "init_db",
    "ensure_admin_from_env",
    "clear_all_tables",
]
