import pytest

from core.database import (
    create_education,
    create_project,
    create_project_category,
    create_skill,
    create_technology,
    create_testimonial,
    create_work_experience,
    get_content_suggestions,
    get_portfolio_statistics,
    get_project_by_id,
    list_work_experience,
    update_skill,
)


def _project(title, **extra):
    return create_project({"title": title, "short_description": f"About {title}", **extra})


def test_create_project_with_links():
    category = create_project_category("Web Apps")
    tech = create_technology("FastAPI", category="framework")
    skill = create_skill({"name": "Python", "category": "Languages", "proficiency_level": 5})
    project = _project(
        "Site",
        content="## Overview\n\nText",
        category_ids=[category["id"]],
        technology_ids=[tech["id"]],
        skills=[{"skill_id": skill["id"]}],
        gallery_images=["/img/a.png"],
    )
    assert project["slug"] == "site"
    assert '<h2 id="overview">Overview</h2>' in project["content_html"]
    assert project["categories"][0]["slug"] == "web-apps"
    assert project["technologies"][0]["name"] == "FastAPI"
    assert project["gallery_images"] == ["/img/a.png"]
    assert _project("Site")["slug"] == "site-2"


def test_project_validation():
    with pytest.raises(ValueError):
        create_project({"title": "x"})
    with pytest.raises(ValueError):
        _project("x", project_type="game")
    with pytest.raises(ValueError):
        _project("x", status="deleted")


def test_skill_and_testimonial_validation():
    with pytest.raises(ValueError):
        create_skill({"name": "Go", "category": "Languages", "proficiency_level": 6})
    skill = create_skill({"name": "Go", "category": "Languages", "proficiency_level": 2})
    assert update_skill(skill["id"], {"proficiency_level": 3})["proficiency_level"] == 3
    assert update_skill(9999, {"name": "x"}) is None

    with pytest.raises(ValueError):
        create_testimonial({"client_name": "A", "testimonial_text": "B", "rating": 0})
    with pytest.raises(ValueError):
        create_testimonial({"client_name": "A", "testimonial_text": "B", "project_id": 42})


def test_statistics():
    _project("One", featured=True, project_type="api")
    _project("Two", project_type="api")
    _project("Archived", status="archived")
    create_technology("Docker")
    create_skill({"name": "Python", "category": "Languages", "proficiency_level": 5, "priority_level": "high"})
    create_testimonial({"client_name": "A", "testimonial_text": "Great", "rating": 5})
    create_testimonial({"client_name": "B", "testimonial_text": "Good", "rating": 4})
    create_testimonial({"client_name": "C", "testimonial_text": "Hidden", "rating": 1, "permission_to_display": False})
    create_work_experience({"company_name": "Acme", "job_title": "Dev", "start_date": "2015-01-01"})

    stats = get_portfolio_statistics()
    assert stats["totalProjects"] == 2
    assert stats["featuredProjects"] == 1
    assert stats["totalTechnologies"] == 1
    assert stats["totalTestimonials"] == 2
    assert stats["averageRating"] == 4.5
    assert stats["yearsExperience"] >= 9
    assert stats["topSkills"] == ["Python"]
    assert stats["projectsByType"] == {"api": 2}


def test_statistics_on_empty_database():
    stats = get_portfolio_statistics()
    assert stats["totalProjects"] == 0
    assert stats["averageRating"] == 0
    assert stats["yearsExperience"] == 0


def test_content_suggestions_prefer_prefix_matches():
    _project("Data Pipeline")
    _project("Big Data Tools")
    create_technology("Databases")
    assert get_content_suggestions("data") == ["Data Pipeline", "Databases", "Big Data Tools"]
    assert get_content_suggestions("  ") == []


def test_work_experience_order_and_json_fields():
    create_work_experience({"company_name": "Old", "job_title": "Dev", "start_date": "2015-01-01",
                            "end_date": "2018-01-01", "achievements": ["Shipped"]})
    create_work_experience({"company_name": "Now", "job_title": "Lead", "start_date": "2019-01-01",
                            "is_current": True})
    work = list_work_experience()
    assert [w["company_name"] for w in work] == ["Now", "Old"]
    assert work[1]["achievements"] == ["Shipped"]
    assert work[0]["is_current"] is True


def test_portfolio_index_and_detail(client):
    _project("Plain")
    featured = _project("Star", featured=True)
    _project("Gone", status="archived")

    resp = client.get("/api/portfolio")
    body = resp.json()
    assert [p["title"] for p in body["data"]] == ["Star", "Plain"]
    assert body["pagination"]["total"] == 2
    assert resp.headers["ETag"]

    resp = client.get("/api/portfolio/star")
    assert resp.status_code == 200
    assert resp.json()["data"]["testimonial_count"] == 0
    assert get_project_by_id(featured["id"])["view_count"] == 1
    assert client.get("/api/portfolio/gone").status_code == 404


def test_portfolio_search_meta(client):
    _project("Weather App")
    _project("Weather Station", short_description="Raspberry Pi sensors")

    resp = client.get("/api/portfolio/search", params={"q": "weather app"})
    meta = resp.json()["searchMeta"]
    assert meta["query"] == "weather app"
    assert meta["totalResults"] == 1
    assert meta["hasExactMatch"] is True
    assert meta["suggestions"] == ["Weather App"]

    assert client.get("/api/portfolio/search").status_code == 400


def test_portfolio_side_endpoints(client):
    create_skill({"name": "Python", "category": "Languages", "proficiency_level": 5})
    create_skill({"name": "Postgres", "category": "Databases", "proficiency_level": 4})
    create_testimonial({"client_name": "A", "testimonial_text": "Great", "featured": True})
    create_testimonial({"client_name": "B", "testimonial_text": "Fine"})
    create_education({"institution_name": "Uni", "degree_type": "BSc", "degree_name": "CS", "start_date": "2010-09-01"})

    skills = client.get("/api/portfolio/skills").json()["data"]
    assert [s["name"] for s in skills["skills"]] == ["Python", "Postgres"]
    assert skills["categories"] == [{"category": "Databases", "count": 1}, {"category": "Languages", "count": 1}]

    featured = client.get("/api/portfolio/testimonials", params={"featured": "true"}).json()["data"]
    assert [t["client_name"] for t in featured] == ["A"]
    everything = client.get("/api/portfolio/testimonials").json()
    assert everything["pagination"]["total"] == 2

    experience = client.get("/api/portfolio/experience").json()["data"]
    assert experience["education"][0]["institution_name"] == "Uni"

    options = client.get("/api/portfolio/filter-options").json()["data"]
    assert "web" in options["projectTypes"]
    assert client.get("/api/portfolio/statistics").json()["data"]["totalSkills"] == 2


def test_admin_portfolio_routes(admin_client):
    resp = admin_client.post("/api/admin/portfolio", json={"title": "New", "short_description": "Thing"})
    assert resp.status_code == 201
    assert admin_client.post("/api/admin/portfolio", json={"title": "No description"}).status_code == 400

    resp = admin_client.post("/api/admin/skills", json={"name": "Rust", "category": "Languages", "proficiency_level": 2})
    assert resp.status_code == 201
    assert admin_client.post("/api/admin/skills", json={"name": "Rust", "category": "Languages", "proficiency_level": "x"}).status_code == 400

    resp = admin_client.post("/api/admin/testimonials", json={"client_name": "Z", "testimonial_text": "Nice", "rating": 5})
    assert resp.status_code == 201
    assert resp.json()["data"]["permission_to_display"] is True


@pytest.mark.parametrize(
    "links, message",
    [
        ({"category_ids": [999]}, "Unknown project category id(s): 999"),
        ({"technology_ids": [999]}, "Unknown technology id(s): 999"),
        ({"skills": [{"skill_id": 999}]}, "Unknown skill id(s): 999"),
        ({"skills": [{"usage_level": "primary"}]}, "Skill 1 is missing skill_id"),
        ({"skills": [{"skill_id": "abc"}]}, "Invalid id 'abc'"),
        ({"category_ids": ["web"]}, "Invalid id 'web'"),
    ],
)
def test_create_project_rejects_unknown_links(links, message):
    with pytest.raises(ValueError) as excinfo:
        _project("Linked", **links)
    assert message in str(excinfo.value)
    assert get_portfolio_statistics()["totalProjects"] == 0


def test_create_project_dedupes_repeated_skills():
    skill = create_skill({"name": "SQL", "category": "Languages", "proficiency_level": 4})
    project = _project("Repeats", skills=[{"skill_id": skill["id"]}, {"skill_id": str(skill["id"]), "usage_level": "secondary"}])
    assert project["id"]


def test_admin_create_project_with_unknown_skill_is_rejected(admin_client):
    resp = admin_client.post(
        "/api/admin/portfolio",
        json={"title": "New", "short_description": "Thing", "skills": [{"skill_id": 999}]},
    )
    assert resp.status_code == 400
    assert admin_client.post(
        "/api/admin/portfolio",
        json={"title": "New", "short_description": "Thing", "skills": [{}]},
    ).status_code == 400
