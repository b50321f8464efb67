import pytest

from helpers.catalogs import branching_catalog, linear_catalog
from questionnaire_flow.catalog import QuestionCatalog


@pytest.fixture(scope="session")
def catalog():
    """The bundled catalog, loaded once for the entire test session."""
    return QuestionCatalog.load()


@pytest.fixture
def linear():
    """Three single-select essential questions: q1, q2, q3."""
    return linear_catalog(3)


@pytest.fixture
def branchy():
    """Catalog with branch-injected follow-ups (see helpers.catalogs)."""
    return branching_catalog()
