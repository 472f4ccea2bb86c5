"""
Tests for content types, nodes and revisions.
"""

import pytest

from monkeyscms.content.manager import ContentTypeManager, NodeManager
from monkeyscms.exceptions import (DuplicateException,
                                   FormValidationException, NotFoundException,
                                   ValidationException)
from monkeyscms.fields.definition import FieldDefinition
from monkeyscms.taxonomy.manager import TaxonomyManager


def article_fields():
    return [
        FieldDefinition(name="Summary", field_type="string", required=True),
        FieldDefinition(name="Rating", field_type="integer"),
    ]


@pytest.fixture
def nodes(db_session):
    manager = NodeManager(db_session)
    manager.types.register("article", "Article", fields=article_fields())
    return manager


@pytest.fixture
def article(nodes, admin_user):
    return nodes.create(
        "article",
        "Hello World",
        {"field_summary": "First", "field_rating": "3"},
        author_id=admin_user.id,
    )


class TestContentTypes:
    """Test content type management."""

    def test_create_derives_id(self, db_session):
        types = ContentTypeManager(db_session)
        content_type = types.create("Blog Post", description="Posts")
        assert content_type.type_id == "blog_post"
        assert types.require("blog_post").label == "Blog Post"

    def test_duplicate(self, db_session):
        types = ContentTypeManager(db_session)
        types.create("Page")
        with pytest.raises(DuplicateException):
            types.create("Page")

    def test_require_missing(self, db_session):
        with pytest.raises(NotFoundException):
            ContentTypeManager(db_session).require("missing")

    def test_list_by_label(self, db_session):
        types = ContentTypeManager(db_session)
        types.create("Page")
        types.create("Article")
        types.update("page", {"enabled": False})

        assert [t.type_id for t in types.list()] == ["article", "page"]
        assert [t.type_id for t in types.list(enabled_only=True)] == ["article"]

    def test_register_is_idempotent(self, nodes):
        """Test registering twice keeps one set of fields."""
        nodes.types.register("article", "Article", fields=article_fields())
        fields = nodes.types.get_fields("article")
        assert [f.machine_name for f in fields] == ["field_summary", "field_rating"]
        assert len(nodes.types.list()) == 1

    def test_add_and_remove_field(self, nodes):
        nodes.types.add_field("article", FieldDefinition(name="Subtitle"), weight=10)
        assert nodes.types.get_fields("article")[-1].machine_name == "field_subtitle"

        nodes.types.remove_field("article", "field_subtitle")
        assert "field_subtitle" not in [f.machine_name for f in nodes.types.get_fields("article")]
        with pytest.raises(NotFoundException):
            nodes.types.remove_field("article", "field_missing")

    def test_delete_refused_with_nodes(self, nodes, article):
        with pytest.raises(ValidationException):
            nodes.types.delete("article")

    def test_delete_detaches_fields(self, nodes):
        nodes.types.delete("article")
        assert nodes.types.get("article") is None
        assert nodes.types.get_fields("article") == []
        assert nodes.fields.get_field("field_summary") is not None


class TestNodes:
    """Test node creation and updates."""

    def test_create(self, nodes, article, admin_user):
        """Test the node, its prepared values and first revision."""
        assert article.slug == "hello-world"
        assert article.status == "draft"
        assert article.revision_id == 1
        assert article.author_id == admin_user.id
        assert nodes.get_values(article) == {"field_summary": "First", "field_rating": 3}

        revisions = nodes.revisions(article)
        assert len(revisions) == 1
        assert revisions[0].log_message == "Created"

    def test_unique_slug(self, nodes, article):
        second = nodes.create("article", "Hello World", {"field_summary": "Again"})
        assert second.slug == "hello-world-2"
        assert nodes.get_by_slug("article", "hello-world-2").id == second.id

    def test_explicit_slug(self, nodes):
        node = nodes.create("article", "Hello", {"field_summary": "x"}, slug="Custom Path")
        assert node.slug == "custom-path"

    def test_invalid_values(self, nodes):
        """Test field errors are reported and nothing is stored."""
        with pytest.raises(FormValidationException) as exc_info:
            nodes.create("article", "Hello", {"field_rating": "many"})

        assert exc_info.value.errors["field_summary"] == ["Summary is required"]
        assert "field_rating" in exc_info.value.errors
        assert nodes.count() == 0

    def test_title_required(self, nodes):
        with pytest.raises(FormValidationException) as exc_info:
            nodes.create("article", "  ", {"field_summary": "x"})
        assert exc_info.value.errors == {"title": ["Title is required"]}

    def test_invalid_status(self, nodes):
        with pytest.raises(ValidationException):
            nodes.create("article", "Hello", {"field_summary": "x"}, status="archived")

    def test_unknown_type(self, nodes):
        with pytest.raises(NotFoundException):
            nodes.create("missing", "Hello")

    def test_update_partial_values(self, nodes, article):
        """Test only submitted fields are replaced."""
        nodes.update(article, title="Hello Again", values={"field_rating": "5"}, status="published")

        assert article.title == "Hello Again"
        assert article.status == "published"
        assert article.revision_id == 2
        assert nodes.get_values(article) == {"field_summary": "First", "field_rating": 5}

    def test_update_validates_submitted_fields(self, nodes, article):
        with pytest.raises(FormValidationException):
            nodes.update(article, values={"field_summary": ""})
        assert nodes.get_values(article)["field_summary"] == "First"

    def test_update_slug(self, nodes, article):
        nodes.update(article, slug="New Slug")
        assert article.slug == "new-slug"

    def test_list_and_count(self, nodes, article):
        nodes.create("article", "Second", {"field_summary": "x"}, status="published")

        assert nodes.count() == 2
        assert nodes.count("article") == 2
        assert [n.title for n in nodes.list(status="published")] == ["Second"]
        assert len(nodes.list(limit=1)) == 1

    def test_delete(self, nodes, article, db_session):
        """Test values, revisions and term links go with the node."""
        taxonomy = TaxonomyManager(db_session)
        taxonomy.create_vocabulary("Topics")
        term = taxonomy.create_term("topics", {"name": "Python"})
        taxonomy.attach_terms_to_content(article.id, "article", [term.id])
        node_id = article.id

        nodes.delete(article)

        assert nodes.get(node_id) is None
        assert nodes.fields.get_values("node", node_id) == {}
        assert taxonomy.get_terms_for_content(node_id, "article") == []


class TestRevisions:
    """Test revision history and revert."""

    def test_revisions_newest_first(self, nodes, article):
        nodes.update(article, values={"field_summary": "Second"}, log_message="Edited")
        assert [r.revision_id for r in nodes.revisions(article)] == [2, 1]
        assert nodes.revisions(article)[0].log_message == "Edited"

    def test_revert(self, nodes, article, admin_user):
        """Test reverting restores title and values as a new revision."""
        nodes.update(article, title="Changed", values={"field_summary": "Second", "field_rating": "1"})

        nodes.revert(article, 1, author_id=admin_user.id)

        assert article.title == "Hello World"
        assert article.revision_id == 3
        assert nodes.get_values(article) == {"field_summary": "First", "field_rating": 3}
        latest = nodes.revisions(article)[0]
        assert latest.log_message == "Reverted to revision 1"
        assert latest.author_id == admin_user.id

    def test_revert_missing(self, nodes, article):
        with pytest.raises(NotFoundException):
            nodes.revert(article, 99)


class TestContentTagging:
    """Test taxonomy field values are mirrored into the content term index."""

    @pytest.fixture
    def topics(self, nodes, db_session):
        taxonomy = TaxonomyManager(db_session)
        taxonomy.create_vocabulary("Topics", hierarchical=False)
        nodes.types.register(
            "post",
            "Post",
            fields=[
                FieldDefinition(
                    name="Topics",
                    field_type="taxonomy_reference",
                    multiple=True,
                    settings={"vocabulary": "topics"},
                )
            ],
        )
        return {
            "manager": taxonomy,
            "python": taxonomy.create_term("topics", {"name": "Python"}),
            "rust": taxonomy.create_term("topics", {"name": "Rust"}),
        }

    def names(self, topics, node):
        return [term.name for term in topics["manager"].get_terms_for_content(node.id, "post")]

    def test_create_tags_node(self, nodes, topics):
        node = nodes.create("post", "Tagged", {"field_topics": [topics["python"].id]})
        assert self.names(topics, node) == ["Python"]

    def test_update_replaces_terms(self, nodes, topics):
        node = nodes.create("post", "Tagged", {"field_topics": [topics["python"].id]})

        nodes.update(node, values={"field_topics": f"{topics['python'].id},{topics['rust'].id}"})
        assert self.names(topics, node) == ["Python", "Rust"]

        nodes.update(node, values={"field_topics": []})
        assert self.names(topics, node) == []

    def test_revert_restores_terms(self, nodes, topics):
        node = nodes.create("post", "Tagged", {"field_topics": [topics["python"].id]})
        nodes.update(node, values={"field_topics": [topics["rust"].id]})

        nodes.revert(node, 1)
        assert self.names(topics, node) == ["Python"]
