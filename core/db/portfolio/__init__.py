"""
Portfolio storage helpers: projects, skills, testimonials, experience.
"""
from core.db.portfolio.projects_store import (
    PROJECT_STATUSES,
    PROJECT_TYPES,
    create_project,
    create_project_category,
    create_technology,
    get_content_suggestions,
    get_featured_projects,
    get_filter_options,
    get_portfolio_statistics,
    get_project_by_id,
    get_project_by_slug,
    get_project_skills,
    increment_project_views,
    list_project_categories,
    list_projects,
    list_technologies,
    search_projects,
)
from core.db.portfolio.skills_store import (
    create_skill,
    create_testimonial,
    get_featured_testimonials,
    get_skill,
    get_skill_categories,
    list_skills,
    list_testimonials,
    update_skill,
)
from core.db.portfolio.experience_store import (
    create_education,
    create_work_experience,
    list_education,
    list_work_experience,
)

__all__ = [
    "PROJECT_STATUSES",
    "PROJECT_TYPES",
    "create_project",
    "create_project_category",
    "create_technology",
    "get_content_suggestions",
    "get_featured_projects",
    "get_filter_options",
    "get_portfolio_statistics",
    "get_project_by_id",
    "get_project_by_slug",
    "get_project_skills",
    "increment_project_views",
    "list_project_categories",
    "list_projects",
    "list_technologies",
    "search_projects",
    "create_skill",
    "create_testimonial",
    "get_featured_testimonials",
    "get_skill",
    "get_skill_categories",
    "list_skills",
    "list_testimonials",
    "update_skill",
    "create_education",
    "create_work_experience",
    "list_education",
    "list_work_experience",
]
