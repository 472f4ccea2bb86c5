"""
Tests for field definition persistence, attachments and value storage.
"""

from datetime import date

import pytest

from monkeyscms.exceptions import DuplicateException, NotFoundException
from monkeyscms.fields.definition import FieldDefinition
from monkeyscms.fields.storage import to_column_value
from monkeyscms.models import FieldValue
from monkeyscms.taxonomy.manager import TaxonomyManager


class TestFieldRepository:
    """Test saving and loading field definitions."""

    def test_save_assigns_id(self, field_manager):
        """Test saving returns the definition with an id and timestamps."""
        definition = field_manager.define_field("Subtitle", "string", save=True, required=True)

        assert definition.id is not None
        assert definition.created_at is not None
        loaded = field_manager.get_field("field_subtitle")
        assert loaded.id == definition.id
        assert loaded.required is True
        assert field_manager.get_field(definition.id).machine_name == "field_subtitle"

    def test_settings_round_trip(self, field_manager):
        """Test JSON columns survive storage."""
        field_manager.define_field(
            "Size", "select", save=True, settings={"options": {"s": "Small"}}, validation={"in": ["s"]}
        )
        field_manager.repository.clear_cache()
        loaded = field_manager.get_field("field_size")
        assert loaded.settings == {"options": {"s": "Small"}}
        assert loaded.validation == {"in": ["s"]}

    def test_duplicate_machine_name(self, field_manager):
        """Test two fields cannot share a machine name."""
        field_manager.define_field("Subtitle", "string", save=True)
        with pytest.raises(DuplicateException):
            field_manager.define_field("Subtitle", "text", save=True)

    def test_update(self, field_manager):
        """Test saving an existing definition updates it."""
        definition = field_manager.define_field("Subtitle", "string", save=True)
        definition.help_text = "Shown under the title"
        field_manager.save_field(definition)

        field_manager.repository.clear_cache()
        assert field_manager.get_field(definition.id).help_text == "Shown under the title"
        assert len(field_manager.get_all_fields()) == 1

    def test_attach_and_list_by_weight(self, field_manager):
        """Test attached fields are listed per bundle in weight order."""
        body = field_manager.define_field("Body", "text")
        image = field_manager.define_field("Image", "image")
        field_manager.attach_field(body, "node", "article", weight=5)
        field_manager.attach_field(image, "node", "article", weight=1)
        field_manager.attach_field(body, "node", "page")

        article = field_manager.get_fields_for("node", "article")
        assert [field.machine_name for field in article] == ["field_image", "field_body"]
        assert [field.machine_name for field in field_manager.get_fields_for("node", "page")] == ["field_body"]
        assert len(field_manager.get_fields_for("node")) == 2
        assert field_manager.get_fields_for("block") == []

    def test_attachment_settings(self, field_manager):
        """Test re-attaching updates weight and settings."""
        body = field_manager.define_field("Body", "text")
        field_manager.attach_field(body, "node", "article", weight=1)
        field_manager.attach_field(body, "node", "article", weight=3, settings={"rows": 8})

        assert field_manager.repository.get_attachment_settings(body, "node", "article") == {
            "weight": 3,
            "settings": {"rows": 8},
        }
        assert field_manager.repository.get_attachment_settings(body, "node", "page") is None

    def test_detach(self, field_manager):
        """Test detaching removes the field from a bundle."""
        body = field_manager.define_field("Body", "text")
        field_manager.attach_field(body, "node", "article")
        field_manager.repository.detach_from_entity(body, "node", "article")
        assert field_manager.get_fields_for("node", "article") == []

    def test_find_by_ids(self, field_manager):
        tint = field_manager.define_field("Tint", "color", save=True, weight=2)
        body = field_manager.define_field("Body", "text", save=True)

        found = field_manager.repository.find_by_ids([tint.id, body.id, 999])
        assert [field.machine_name for field in found] == ["field_body", "field_tint"]
        assert field_manager.repository.find_by_ids([]) == []

    def test_delete_removes_values(self, field_manager, db_session):
        """Test deleting a field removes attachments and values."""
        body = field_manager.define_field("Body", "text", save=True)
        field_manager.attach_field(body, "node", "article")
        field_manager.set_values("node", 1, {"field_body": "Hello"})

        field_manager.delete_field("field_body")

        assert field_manager.get_field("field_body") is None
        assert db_session.query(FieldValue).count() == 0
        with pytest.raises(NotFoundException):
            field_manager.delete_field("field_body")


class TestFieldValueStorage:
    """Test storing values in typed columns."""

    def test_typed_columns(self, field_manager, db_session):
        """Test values land in the column for their type."""
        count = field_manager.define_field("Count", "integer", save=True)
        starts = field_manager.define_field("Starts", "date", save=True)
        featured = field_manager.define_field("Featured", "boolean", save=True)

        field_manager.set_values("node", 1, {"field_count": "7", "field_starts": "2024-01-05", "field_featured": False})

        row = db_session.query(FieldValue).filter(FieldValue.field_id == count.id).one()
        assert row.value_int == 7
        assert row.value_string is None
        assert field_manager.storage.get_value(starts, "node", 1) == date(2024, 1, 5)
        assert field_manager.storage.get_value(featured, "node", 1) is False

    def test_multi_valued_fields(self, field_manager):
        """Test lists are stored one row per item and read back in order."""
        field_manager.define_field("Links", "url", save=True, multiple=True)
        field_manager.set_values("node", 1, {"field_links": ["https://a.com", "", "https://b.com"]})
        assert field_manager.get_values("node", 1) == {"field_links": ["https://a.com", "https://b.com"]}

    def test_cardinality_truncates(self, field_manager):
        """Test values beyond the cardinality are dropped."""
        field_manager.define_field("Pair", "string", save=True, cardinality=2)
        field_manager.set_values("node", 1, {"field_pair": ["a", "b", "c"]})
        assert field_manager.get_values("node", 1) == {"field_pair": ["a", "b"]}

    def test_structured_values(self, field_manager):
        """Test JSON columns hold dicts and repeater items."""
        field_manager.define_field("More", "link", save=True)
        field_manager.define_field("Slides", "repeater", save=True)
        link = {"url": "https://x.com", "title": "X", "target": "_self"}
        slides = [{"field_caption": "One"}]

        field_manager.set_values("node", 1, {"field_more": link, "field_slides": slides})
        assert field_manager.get_values("node", 1) == {"field_more": link, "field_slides": slides}

    def test_mismatched_value_kept_as_json(self, field_manager, db_session):
        """Test a value that does not fit its typed column is kept in value_json."""
        count = field_manager.define_field("Count", "integer", save=True)
        field_manager.set_values("node", 1, {"field_count": "many"})

        row = db_session.query(FieldValue).filter(FieldValue.field_id == count.id).one()
        assert row.value_int is None
        assert row.value_json == "many"
        assert field_manager.get_values("node", 1) == {"field_count": "many"}

    def test_empty_values_not_stored(self, field_manager, db_session):
        """Test setting an empty value clears the field."""
        field_manager.define_field("Subtitle", "string", save=True)
        field_manager.set_values("node", 1, {"field_subtitle": "First"})
        field_manager.set_values("node", 1, {"field_subtitle": ""})

        assert db_session.query(FieldValue).count() == 0
        assert field_manager.get_values("node", 1) == {}

    def test_values_scoped_by_entity(self, field_manager):
        """Test values of different entities do not mix."""
        field_manager.define_field("Subtitle", "string", save=True)
        field_manager.set_values("node", 1, {"field_subtitle": "One"})
        field_manager.set_values("node", 2, {"field_subtitle": "Two"})
        field_manager.set_values("block", 1, {"field_subtitle": "Block"})

        assert field_manager.get_values("node", 2) == {"field_subtitle": "Two"}
        assert field_manager.get_values("block", 1) == {"field_subtitle": "Block"}

    def test_set_values_limited_to_fields(self, field_manager):
        """Test keys outside the given fields are ignored."""
        subtitle = field_manager.define_field("Subtitle", "string", save=True)
        field_manager.define_field("Secret", "string", save=True)
        field_manager.set_values("node", 1, {"field_subtitle": "Shown", "field_secret": "Hidden"}, fields=[subtitle])
        assert field_manager.get_values("node", 1) == {"field_subtitle": "Shown"}

    def test_unknown_field_rejected(self, field_manager):
        """Test writing an unknown field raises."""
        with pytest.raises(NotFoundException):
            field_manager.set_values("node", 1, {"field_missing": "x"})

    def test_revisions(self, field_manager):
        """Test snapshots can be read and restored."""
        field_manager.define_field("Subtitle", "string", save=True)
        field_manager.set_values("node", 1, {"field_subtitle": "Original"})
        assert field_manager.storage.create_revision("node", 1, revision_id=10) == 1

        field_manager.set_values("node", 1, {"field_subtitle": "Changed"})
        assert field_manager.storage.get_revision_values("node", 1, 10) == {"field_subtitle": "Original"}

        field_manager.storage.restore_revision("node", 1, 10)
        assert field_manager.get_values("node", 1) == {"field_subtitle": "Original"}

    def test_delete_entity_values(self, field_manager):
        """Test all values and snapshots of an entity are removed."""
        field_manager.define_field("Subtitle", "string", save=True)
        field_manager.set_values("node", 1, {"field_subtitle": "x"})
        field_manager.storage.create_revision("node", 1, revision_id=1)

        field_manager.storage.delete_entity_values("node", 1)
        assert field_manager.get_values("node", 1) == {}
        assert field_manager.storage.get_revision_values("node", 1, 1) == {}

    def test_to_column_value(self):
        """Test conversion to column values."""
        assert to_column_value("value_int", "12") == 12
        assert to_column_value("value_int", "x") is None
        assert to_column_value("value_boolean", "on") is True
        assert to_column_value("value_date", "2024-02-03") == date(2024, 2, 3)
        assert to_column_value("value_json", {"a": 1}) == {"a": 1}


class TestFieldManagerRendering:
    """Test the rendering helpers of the field manager."""

    def test_entity_form_filled_with_values(self, field_manager):
        """Test the entity form shows stored values."""
        subtitle = field_manager.define_field("Subtitle", "string")
        field_manager.attach_field(subtitle, "node", "article")
        field_manager.set_values("node", 4, {"field_subtitle": "Stored"})

        form = field_manager.render_entity_form("node", 4, "article")
        assert 'value="Stored"' in form.html
        assert "<form" in form.html

    def test_entity_display(self, field_manager):
        """Test display output is wrapped and escaped."""
        subtitle = field_manager.define_field("Subtitle", "string")
        field_manager.attach_field(subtitle, "node", "article")
        field_manager.set_values("node", 4, {"field_subtitle": "<Stored>"})

        html = field_manager.render_entity_display("node", 4, "article").html
        assert html.startswith('<div class="field-display-container">')
        assert "&lt;Stored&gt;" in html

    def test_validate_entity_values(self, field_manager):
        """Test validation uses the attached fields."""
        title = field_manager.define_field("Headline", "string", required=True)
        field_manager.attach_field(title, "node", "article")
        assert field_manager.validate_entity_values("node", {}, "article") == {
            "field_headline": ["Headline is required"]
        }
        assert field_manager.is_valid([title], {"field_headline": "x"})

    def test_asset_tags(self, field_manager):
        """Test asset tags for the widgets of given fields."""
        tags = field_manager.asset_tags([FieldDefinition(name="Body", field_type="markdown")])
        assert '<link rel="stylesheet" href="/css/fields/markdown.css">' in tags
        assert '<script src="/js/fields/markdown.js"></script>' in tags

    def test_taxonomy_form_lists_vocabulary_terms(self, field_manager, db_session):
        """Test taxonomy fields offer the terms of their vocabulary."""
        taxonomy = TaxonomyManager(db_session)
        taxonomy.create_vocabulary("Topics", hierarchical=False)
        python = taxonomy.create_term("topics", {"name": "Python"})
        field = FieldDefinition(
            name="Topics", field_type="taxonomy_reference", multiple=True, settings={"vocabulary": "topics"}
        )

        html = field_manager.render_form([field], {"field_topics": [python.id]}).html
        assert "Python" in html
        assert f'value="{python.id}" checked' in html
        assert "No terms available" not in html

        display = field_manager.render_field_display(field, [python.id]).html
        assert "Python" in display

    def test_taxonomy_terms_inside_repeater(self, field_manager, db_session):
        """Test terms are loaded for taxonomy sub-fields of a repeater."""
        taxonomy = TaxonomyManager(db_session)
        taxonomy.create_vocabulary("Topics", hierarchical=False)
        taxonomy.create_term("topics", {"name": "Python"})
        field = FieldDefinition(
            name="Sections",
            field_type="repeater",
            settings={"sub_fields": [{"name": "Topic", "type": "taxonomy_reference", "settings": {"vocabulary": "topics"}}]},
        )

        terms = field_manager.taxonomy_terms([field])
        assert [term["name"] for term in terms["topics"]] == ["Python"]
