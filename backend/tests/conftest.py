import pytest

from app import create_app
from config import TestConfig
from extensions import db
from flowgraph import FlowGraph


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def graph():
    """A fresh flow holding only the trigger node."""
    return FlowGraph()


@pytest.fixture
def wired_graph(graph):
    """trigger -> node_1 (message) -> node_2 (media)."""
    first = graph.add_node("message", {"x": 300, "y": 100})
    second = graph.add_node("media", {"x": 600, "y": 100})
    graph.add_edge("trigger_1", "source", first.id)
    graph.add_edge(first.id, "source", second.id)
    return graph
