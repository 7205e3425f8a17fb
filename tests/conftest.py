import pytest

from cv_ingestion.core.document_store import InMemoryDocumentStore
from cv_ingestion.core.entity_resolver import EntityResolver
from cv_ingestion.core.schemas import Catalog, Degree, Institution, Skill, SkillCategory


def catalog_documents() -> dict:
    """Small reference catalog keyed by collection name, as the store holds it."""
    return {
        "degrees": [
            {"id": "deg-bsc", "name": "Bachelor of Science", "short_name": "BSc", "level": "Undergraduate"},
            {"id": "deg-mba", "name": "Master of Business Administration", "short_name": "MBA", "level": "Graduate"},
            {"id": "deg-old", "name": "Bachelor of Arts", "short_name": "BA", "level": "Undergraduate", "is_active": False},
        ],
        "institutions": [
            {"id": "inst-xyz", "name": "XYZ University", "type": "University", "location": "Dhaka"},
            {"id": "inst-dc", "name": "Dhaka College", "type": "College", "location": "Dhaka"},
        ],
        "skill_categories": [
            {"id": "cat-lang", "name": "Languages"},
            {"id": "cat-fe", "name": "Frontend"},
            {"id": "cat-other", "name": "Other"},
        ],
        "skills": [
            {"id": "sk-js", "name": "JavaScript", "category_id": "cat-lang"},
            {"id": "sk-py", "name": "Python", "category_id": "cat-lang"},
            {"id": "sk-react", "name": "React", "category_id": "cat-fe"},
        ],
    }


@pytest.fixture
def store():
    return InMemoryDocumentStore(catalog_documents())


@pytest.fixture
def catalog():
    docs = catalog_documents()
    return Catalog(
        degrees=[Degree.model_validate(d) for d in docs["degrees"] if d.get("is_active", True)],
        institutions=[Institution.model_validate(d) for d in docs["institutions"]],
        skills=[Skill.model_validate(d) for d in docs["skills"]],
        skill_categories=[SkillCategory.model_validate(d) for d in docs["skill_categories"]],
    )


@pytest.fixture
def resolver(catalog):
    r = EntityResolver()
    r.load_catalog(catalog)
    return r
