"""
Seed a development database with sample blog, portfolio and flight data.

Usage:
  python -m scripts.seed_database           # add sample data to an empty database
  python -m scripts.seed_database --reset   # wipe every table first
"""
from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

load_dotenv(override=True)

from core.database import (  # noqa: E402
    clear_all_tables,
    create_airport,
    create_category,
    create_education,
    create_post,
    create_project,
    create_skill,
    create_tag,
    create_technology,
    create_testimonial,
    create_trip,
    create_work_experience,
    fetch_count,
    init_db,
)

log = logging.getLogger("site.seed")

CATEGORIES = [
    ("Web Development", "Building for the browser", "#3b82f6"),
    ("Travel", "Trips and flights", "#10b981"),
    ("Notes", "Short write-ups", "#f59e0b"),
]

TAGS = ["python", "fastapi", "sqlite", "aviation", "performance"]

POSTS = [
    {
        "title": "Building a Personal Site with FastAPI",
        "content": "# Why FastAPI\n\nFastAPI keeps the **API** and the pages in one process.\n\n## Storage\n\nSQLite is enough for a personal site.",
        "status": "published",
        "featured": True,
        "categories": ["web-development"],
        "tags": ["python", "fastapi", "sqlite"],
    },
    {
        "title": "Making Pages Fast",
        "content": "## Caching\n\nETags and `Cache-Control` headers let browsers skip work.\n\n## Budgets\n\nA performance gate blocks slow deploys.",
        "status": "published",
        "categories": ["web-development"],
        "tags": ["performance"],
    },
    {
        "title": "A Week in Lisbon",
        "content": "Flew out of London early on a Monday.\n\n## Getting there\n\nShort hop, window seat.",
        "status": "published",
        "categories": ["travel"],
        "tags": ["aviation"],
    },
    {
        "title": "Draft: Notes on Geocoding",
        "content": "Nominatim asks for one request per second.",
        "status": "draft",
        "categories": ["notes"],
        "tags": [],
    },
]

AIRPORTS = [
    {"iata_code": "LHR", "name": "London Heathrow", "city": "London", "country": "United Kingdom",
     "country_code": "GB", "latitude": 51.47, "longitude": -0.4543, "timezone": "Europe/London"},
    {"iata_code": "LIS", "name": "Humberto Delgado Airport", "city": "Lisbon", "country": "Portugal",
     "country_code": "PT", "latitude": 38.7813, "longitude": -9.1359, "timezone": "Europe/Lisbon"},
    {"iata_code": "JFK", "name": "John F. Kennedy International", "city": "New York", "country": "United States",
     "country_code": "US", "latitude": 40.6413, "longitude": -73.7781, "timezone": "America/New_York"},
    {"iata_code": "KEF", "name": "Keflavik International", "city": "Reykjavik", "country": "Iceland",
     "country_code": "IS", "timezone": "Atlantic/Reykjavik"},
]


def seed_blog() -> int:
    category_ids = {}
    for name, description, color in CATEGORIES:
        category = create_category(name, description=description, color=color)
        category_ids[category["slug"]] = category["id"]
    tag_ids = {name: create_tag(name)["id"] for name in TAGS}

    for post in POSTS:
        create_post(
            {
                "title": post["title"],
                "content": post["content"],
                "status": post["status"],
                "featured": post.get("featured", False),
                "category_ids": [category_ids[slug] for slug in post["categories"]],
                "tag_ids": [tag_ids[name] for name in post["tags"]],
            }
        )
    return len(POSTS)


def seed_portfolio() -> int:
    python = create_skill({"name": "Python", "category": "Languages", "proficiency_level": 5,
                           "years_experience": 8, "priority_level": "high"})
    create_skill({"name": "SQL", "category": "Databases", "proficiency_level": 4, "years_experience": 6})
    create_skill({"name": "Docker", "category": "DevOps", "proficiency_level": 3, "priority_level": "low"})
    technology = create_technology("FastAPI", category="framework", website_url="https://fastapi.tiangolo.com")

    project = create_project(
        {
            "title": "Personal Site",
            "short_description": "Blog, portfolio and flight log in one FastAPI app.",
            "content": "## Overview\n\nServer-rendered pages plus a JSON API.",
            "featured": True,
            "project_type": "web",
            "my_role": "Developer",
            "github_url": "https://github.com/example/personal-site",
            "technology_ids": [technology["id"]],
            "skills": [{"skill_id": python["id"], "usage_level": "primary"}],
            "start_date": "2023-01-01",
        }
    )
    create_project(
        {
            "title": "Airport Geocoder",
            "short_description": "Fills in missing airport coordinates from OpenStreetMap.",
            "project_type": "library",
            "start_date": "2023-06-01",
            "end_date": "2023-07-15",
        }
    )
    create_testimonial(
        {
            "client_name": "Sam Taylor",
            "client_position": "Engineering Manager",
            "client_company": "Example Ltd",
            "project_id": project["id"],
            "testimonial_text": "Shipped on time and documented everything.",
            "rating": 5,
            "featured": True,
            "work_relationship": "manager",
        }
    )
    create_work_experience(
        {
            "company_name": "Example Ltd",
            "job_title": "Backend Developer",
            "employment_type": "full_time",
            "location": "London",
            "achievements": ["Cut API latency in half"],
            "technologies_used": ["Python", "PostgreSQL"],
            "start_date": "2020-03-01",
            "is_current": True,
        }
    )
    create_education(
        {
            "institution_name": "University of Example",
            "degree_type": "BSc",
            "degree_name": "Computer Science",
            "start_date": "2016-09-01",
            "end_date": "2019-06-30",
        }
    )
    return 2


def seed_flights() -> int:
    airports = {a["iata_code"]: create_airport(a)["id"] for a in AIRPORTS}
    create_trip(
        "Lisbon Getaway",
        "2024-04-08",
        "2024-04-14",
        [
            {"flight_number": "TP1351", "airline_name": "TAP Air Portugal",
             "departure_airport_id": airports["LHR"], "arrival_airport_id": airports["LIS"],
             "departure_time": "2024-04-08T07:05:00", "arrival_time": "2024-04-08T09:50:00", "class": "economy"},
            {"flight_number": "TP1356", "airline_name": "TAP Air Portugal",
             "departure_airport_id": airports["LIS"], "arrival_airport_id": airports["LHR"],
             "departure_time": "2024-04-14T17:30:00", "arrival_time": "2024-04-14T20:10:00", "class": "economy"},
        ],
    )
    create_trip(
        "New York Conference",
        "2024-09-02",
        "2024-09-06",
        [
            {"flight_number": "BA117", "airline_name": "British Airways",
             "departure_airport_id": airports["LHR"], "arrival_airport_id": airports["JFK"],
             "departure_time": "2024-09-02T08:25:00", "arrival_time": "2024-09-02T11:20:00", "class": "business"},
        ],
    )
    return 3


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the database with sample content.")
    parser.add_argument("--reset", action="store_true", help="Delete all existing rows first")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    init_db()
    if args.reset:
        clear_all_tables()
        print("Cleared all tables.")
    elif fetch_count("SELECT COUNT(*) AS count FROM blog_posts"):
        print("Database already has content; use --reset to start over.")
        return 1

    posts = seed_blog()
    projects = seed_portfolio()
    flights = seed_flights()
    print(f"Seeded {posts} posts, {projects} projects, {flights} flights.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
