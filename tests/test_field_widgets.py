"""
Tests for the HTML builder, render context, settings and individual widgets.
"""

from datetime import datetime

from monkeyscms.fields.definition import FieldDefinition
from monkeyscms.fields.html import Html, HtmlBuilder
from monkeyscms.fields.rendering import AssetCollection, RenderContext, RenderResult
from monkeyscms.fields.settings import FieldSettings
from monkeyscms.fields.widgets import (AddressWidget, CheckboxesWidget,
                                       CodeWidget, ColorWidget, DateTimeWidget,
                                       DateWidget, DecimalWidget, EmailWidget,
                                       FileWidget, GalleryWidget,
                                       GeolocationWidget, HiddenWidget,
                                       ImageWidget, JsonWidget, LinkWidget,
                                       MarkdownWidget, NumberWidget,
                                       PasswordWidget, PhoneWidget,
                                       SelectWidget, SlugWidget, SwitchWidget,
                                       TaxonomyWidget, TextInputWidget,
                                       TimeWidget, VideoWidget, WysiwygWidget)
from monkeyscms.fields.widgets.media import video_embed_html
from monkeyscms.fields.widgets.reference import parse_ids


def context(**options):
    return RenderContext.create(**options)


class TestHtmlBuilder:
    """Test the fluent HTML builder."""

    def test_text_is_escaped(self):
        """Test text content and attribute values are escaped."""
        html = HtmlBuilder("div").attr("title", 'a"b').text("<script>").render()
        assert html == '<div title="a&#34;b">&lt;script&gt;</div>'

    def test_raw_html(self):
        """Test html() inserts markup unchanged."""
        assert Html.div().html("<b>x</b>").render() == "<div><b>x</b></div>"

    def test_void_element(self):
        """Test void elements have no closing tag."""
        assert Html.input("text").name("q").render() == '<input type="text" name="q">'

    def test_boolean_attributes(self):
        """Test True renders a bare attribute and False/None remove it."""
        element = Html.input("checkbox").attr("checked", True).attr("disabled", True)
        element.attr("disabled", False).attr("title", None)
        assert element.render() == '<input type="checkbox" checked>'

    def test_classes(self):
        """Test class_ skips empty names and add_class avoids duplicates."""
        element = Html.span().class_("a", None, "", "b").add_class("b", "c")
        assert element.get_attr("class") == "a b c"

    def test_children_and_when(self):
        """Test nested children and conditional configuration."""
        element = (
            Html.element("ul")
            .children([Html.element("li").text("one"), "<li>two</li>", ""])
            .when(True, lambda e: e.data("count", 2))
            .when(False, lambda e: e.data("hidden", 1))
        )
        assert element.render() == '<ul data-count="2"><li>one</li><li>two</li></ul>'

    def test_option(self):
        """Test option shortcut with selection."""
        assert Html.option("m", "Medium", True).render() == '<option value="m" selected>Medium</option>'


class TestRenderContext:
    """Test the immutable render context."""

    def test_with_methods_return_copies(self):
        """Test configuring a context leaves the original untouched."""
        base = RenderContext.create(form_id="node_form")
        child = base.with_delta(2).with_prefix("items[0]").with_data("vocabulary", "tags")

        assert base.delta is None
        assert base.name_prefix == ""
        assert child.form_id == "node_form"
        assert child.delta == 2
        assert child.get("vocabulary") == "tags"

    def test_errors(self):
        """Test error lookup per field."""
        ctx = RenderContext.create(errors={"field_title": ["Title is required"]})
        assert ctx.has_errors_for("field_title")
        assert not ctx.has_errors_for("field_body")
        assert ctx.errors_for("field_body") == []

    def test_for_display(self):
        """Test display contexts are read-only."""
        ctx = RenderContext.for_display()
        assert ctx.display and ctx.readonly and ctx.hide_help


class TestAssets:
    """Test asset collection and render results."""

    def test_files_are_unique(self):
        """Test duplicate files are kept once in insertion order."""
        assets = AssetCollection().add_css("/a.css").add_css("/b.css").add_css("/a.css")
        assert assets.css_files == ["/a.css", "/b.css"]

    def test_render_js_wraps_init_scripts(self):
        """Test init scripts run on DOMContentLoaded."""
        assets = AssetCollection().add_js("/x.js").add_init_script("X.init('a');")
        js = assets.render_js()
        assert '<script src="/x.js"></script>' in js
        assert 'document.addEventListener("DOMContentLoaded"' in js
        assert "X.init('a');" in js

    def test_merge(self):
        """Test merging combines files and keyed inline code."""
        first = AssetCollection().add_css("/a.css").add_inline_style("widget", "a{}")
        second = AssetCollection().add_css("/b.css").add_inline_style("widget", "b{}")
        merged = first.merge(second)
        assert merged.css_files == ["/a.css", "/b.css"]
        assert merged.inline_styles == {"widget": "b{}"}
        assert not merged.is_empty()

    def test_combine_results(self):
        """Test combining render results concatenates HTML and assets."""
        first = RenderResult.create("<a>", AssetCollection().add_js("/a.js"))
        second = RenderResult.create("<b>", AssetCollection().add_js("/b.js"))
        combined = first.combine(second).wrap("<div>", "</div>")
        assert combined.html == "<div><a><b></div>"
        assert combined.assets.js_files == ["/a.js", "/b.js"]
        assert combined.__html__() == combined.html


class TestFieldSettings:
    """Test typed settings access."""

    SCHEMA = {
        "rows": {"type": "integer", "default": 5, "min": 1, "max": 50},
        "layout": {"type": "string", "options": ["vertical", "grid"]},
        "title": {"type": "string", "required": True},
    }

    def test_defaults_and_getters(self):
        """Test schema defaults and type coercion."""
        settings = FieldSettings({"show": "yes", "ratio": "1.5", "bad": "x"}, self.SCHEMA)
        assert settings.get_int("rows") == 5
        assert settings.get_bool("show")
        assert settings.get_float("ratio") == 1.5
        assert settings.get_int("bad", 7) == 7

    def test_json_lists_and_dicts(self):
        """Test JSON encoded settings are decoded."""
        settings = FieldSettings({"options": '{"a": "A"}', "items": "[1, 2]"})
        assert settings.get_dict("options") == {"a": "A"}
        assert settings.get_list("items") == [1, 2]
        assert settings.get_list("options") == []

    def test_validate(self):
        """Test schema validation messages."""
        errors = FieldSettings({"rows": 99, "layout": "masonry"}, self.SCHEMA).validate()
        assert errors == {
            "rows": "Setting 'rows' must be at most 50",
            "layout": "Setting 'layout' must be one of: vertical, grid",
            "title": "Setting 'title' is required",
        }

    def test_transformations_are_immutable(self):
        """Test with_value and without return new settings."""
        settings = FieldSettings({"a": 1})
        changed = settings.with_value("b", 2).without("a")
        assert settings.all() == {"a": 1}
        assert changed.all() == {"b": 2}


class TestTextWidgets:
    """Test text widgets."""

    def test_text_input(self):
        """Test input attributes, escaping and the wrapper."""
        field = FieldDefinition(name="Title", required=True, help_text="Shown in lists")
        html = TextInputWidget().render_field(field, '<b>"x"</b>', context()).html

        assert 'id="form_field_title"' in html
        assert 'name="field_title"' in html
        assert 'value="&lt;b&gt;&#34;x&#34;&lt;/b&gt;"' in html
        assert 'aria-describedby="form_field_title_help"' in html
        assert "field-widget--required" in html
        assert '<span class="field-widget__required">*</span>' in html
        assert "Shown in lists" in html

    def test_prefix_and_suffix(self):
        """Test addons wrap the input in a group."""
        field = FieldDefinition(name="Price", settings={"prefix": "$", "suffix": "USD"})
        html = TextInputWidget().render_field(field, "", context()).html
        assert 'class="field-input-group__prefix">$</span>' in html
        assert 'class="field-input-group__suffix">USD</span>' in html

    def test_errors_rendered(self):
        """Test field errors appear in the wrapper."""
        field = FieldDefinition(name="Title")
        ctx = context(errors={"field_title": ["Title is required"]})
        html = TextInputWidget().render_field(field, "", ctx).html
        assert "field-widget--error" in html
        assert '<div class="field-widget__error">Title is required</div>' in html

    def test_hide_label(self):
        """Test the label can be suppressed."""
        html = TextInputWidget().render_field(FieldDefinition(name="Title"), "", context(hide_label=True)).html
        assert "<label" not in html

    def test_name_prefix_and_delta(self):
        """Test nested names and ids."""
        ctx = context(form_id="f", name_prefix="field_items[0]", index=0)
        widget = TextInputWidget()
        field = FieldDefinition(name="Title")
        assert widget.field_name(field, ctx) == "field_items[0][field_title]"
        assert widget.field_id(field, ctx) == "f_field_title_0"
        assert widget.field_name(field, context().with_delta(3)) == "field_title[3]"

    def test_email_display_is_mailto(self):
        """Test email display links to mailto."""
        html = EmailWidget().render_display(FieldDefinition(name="Email"), "a@b.co", context()).html
        assert html == '<a class="field-display field-display--email" href="mailto:a@b.co">a@b.co</a>'

    def test_empty_display(self):
        """Test empty values render a placeholder."""
        html = EmailWidget().render_display(FieldDefinition(name="Email"), None, context()).html
        assert "field-display--empty" in html

    def test_slug_prepare(self):
        """Test slugs are lowercased and stripped of invalid characters."""
        assert SlugWidget().prepare_value(FieldDefinition(name="Path"), "My-Page!") == "my-page"
        assert SlugWidget().prepare_value(FieldDefinition(name="Path"), "") is None

    def test_hidden_has_no_wrapper(self):
        """Test hidden inputs render without label or wrapper."""
        html = HiddenWidget().render_field(FieldDefinition(name="Ref"), 5, context()).html
        assert html == '<input type="hidden" name="field_ref" value="5" id="form_field_ref">'


class TestSelectionWidgets:
    """Test selection widgets."""

    def test_select_options(self):
        """Test the empty option and selected state."""
        field = FieldDefinition(name="Size", field_type="select", settings={"options": {"s": "Small", "m": "Medium"}})
        html = SelectWidget().render_field(field, "m", context()).html
        assert '<option value="">- Select -</option>' in html
        assert '<option value="m" selected>Medium</option>' in html
        assert '<option value="s">Small</option>' in html

    def test_select_display_uses_labels(self):
        """Test display shows option labels."""
        field = FieldDefinition(name="Size", field_type="select", settings={"options": {"s": "Small", "m": "Medium"}})
        html = SelectWidget().render_display(field, ["s", "m"], context()).html
        assert "Small, Medium" in html

    def test_checkboxes(self):
        """Test checkbox groups submit as a list."""
        field = FieldDefinition(name="Tags", field_type="multiselect", settings={"options": ["a", "b"]})
        widget = CheckboxesWidget()
        html = widget.render_field(field, ["b"], context()).html

        assert html.count('name="field_tags[]"') == 2
        assert 'value="b" class="field-checkbox__input" checked' in html
        assert widget.prepare_value(field, ["a", "", "b"]) == ["a", "b"]
        assert widget.prepare_value(field, None) == []

    def test_switch(self):
        """Test the hidden input and checked coercion."""
        field = FieldDefinition(name="Published", field_type="boolean")
        widget = SwitchWidget()
        html = widget.render_field(field, True, context()).html

        assert '<input type="hidden" name="field_published" value="0">' in html
        assert "checked" in html
        assert widget.prepare_value(field, ["0", "1"]) is True
        assert widget.prepare_value(field, "0") is False


class TestValueWidgets:
    """Test widgets that convert submitted values."""

    def test_number(self):
        """Test numeric conversion and range checks."""
        integer = FieldDefinition(name="Age", field_type="integer", settings={"min": 18})
        widget = NumberWidget()
        assert widget.prepare_value(integer, "42") == 42
        assert widget.prepare_value(FieldDefinition(name="Ratio", field_type="float"), "1.5") == 1.5
        assert widget.prepare_value(integer, "") is None
        assert widget.validate(integer, "12").errors == ["Value must be at least 18"]
        assert "1,234" in widget.render_display(integer, 1234, context()).html

    def test_date(self):
        """Test date normalization and bounds."""
        field = FieldDefinition(name="Start", field_type="date", settings={"min_date": "2024-01-01"})
        widget = DateWidget()
        assert widget.prepare_value(field, datetime(2024, 1, 5, 10, 0)) == "2024-01-05"
        assert widget.validate(field, "2024-13-01").errors == ["Please enter a valid date"]
        assert widget.validate(field, "2023-12-31").errors == ["Date must be on or after 2024-01-01"]
        assert widget.validate(field, "2024-02-01").is_valid

    def test_link(self):
        """Test link values are normalized."""
        field = FieldDefinition(name="More", field_type="link")
        widget = LinkWidget()
        prepared = widget.prepare_value(field, {"url": " https://x.com ", "title": " X ", "external": "1"})
        assert prepared == {"url": "https://x.com", "title": "X", "target": "_blank"}
        assert widget.prepare_value(field, {"url": ""}) is None
        assert widget.validate(field, {"url": "javascript:alert(1)"}).errors == ["Please enter a valid URL"]
        assert widget.validate(field, {"url": "/about"}).is_valid

    def test_link_inputs(self):
        """Test link sub-inputs are named by part."""
        html = LinkWidget().render_field(FieldDefinition(name="More", field_type="link"), "https://x.com", context()).html
        assert 'name="field_more[url]"' in html
        assert 'name="field_more[title]"' in html
        assert 'name="field_more[target]"' in html

    def test_json(self):
        """Test JSON parsing and error reporting."""
        field = FieldDefinition(name="Data", field_type="json")
        widget = JsonWidget()
        assert widget.prepare_value(field, '{"a": 1}') == {"a": 1}
        assert widget.validate(field, "{bad").errors[0].startswith("Invalid JSON:")
        assert widget.format_value(field, {"a": 1}) == '{\n  "a": 1\n}'

    def test_reference_ids(self):
        """Test reference values parse to integer ids."""
        assert parse_ids("1, 2,x") == [1, 2]
        assert parse_ids('[3, {"id": 4}]') == [3, 4]
        assert parse_ids(None) == []

    def test_taxonomy_cardinality(self):
        """Test single-valued taxonomy fields store one id."""
        widget = TaxonomyWidget()
        assert widget.prepare_value(FieldDefinition(name="Tags", field_type="taxonomy_reference", multiple=True), "1,2") == [1, 2]
        assert widget.prepare_value(FieldDefinition(name="Section", field_type="taxonomy_reference"), "7") == 7

    def test_taxonomy_terms_from_context(self):
        """Test vocabulary terms in the context win over the options setting."""
        field = FieldDefinition(
            name="Tags", field_type="taxonomy_reference", multiple=True, settings={"options": {"1": "News"}}
        )
        widget = TaxonomyWidget()
        terms = {"tags": [{"id": 5, "name": "Python", "depth": 1}]}

        html = widget.render_field(field, [5], context(data={"taxonomy_terms": terms})).html
        assert "Python" in html
        assert "field-taxonomy__depth-1" in html
        assert 'value="5" checked' in html
        assert "News" not in html

        assert "News" in widget.render_field(field, [], context()).html
        assert "Python" in widget.render_display(field, [5], RenderContext.for_display(data={"taxonomy_terms": terms})).html

    def test_taxonomy_without_terms(self):
        field = FieldDefinition(name="Tags", field_type="taxonomy_reference")
        assert "No terms available" in TaxonomyWidget().render_field(field, None, context()).html

    def test_datetime_storage_format(self):
        """Test date-times are shown as datetime-local and stored with seconds."""
        field = FieldDefinition(name="Starts", field_type="datetime")
        widget = DateTimeWidget()
        assert widget.prepare_value(field, "2024-05-01T10:30") == "2024-05-01 10:30:00"
        assert widget.format_value(field, "2024-05-01 10:30:00") == "2024-05-01T10:30"
        assert widget.prepare_value(field, "") is None

        html = widget.render_field(field, datetime(2024, 5, 1, 10, 30), context()).html
        assert 'type="datetime-local"' in html
        assert 'value="2024-05-01T10:30"' in html

    def test_time(self):
        """Test times are shown without and stored with seconds."""
        field = FieldDefinition(name="Opens", field_type="time")
        widget = TimeWidget()
        assert widget.prepare_value(field, "10:30") == "10:30:00"
        assert widget.format_value(field, "10:30:00") == "10:30"
        assert '"dateFormat": "H:i"' in widget.init_script(field, "form_field_opens")

    def test_decimal_rounding(self):
        """Test decimals round to the configured places and show the currency."""
        price = FieldDefinition(name="Price", field_type="decimal", settings={"decimals": 2, "currency": "EUR"})
        widget = DecimalWidget()
        assert widget.prepare_value(price, "3.14159") == 3.14
        assert widget.prepare_value(price, "") is None
        whole = FieldDefinition(name="Weight", field_type="decimal", settings={"decimals": 0})
        assert widget.prepare_value(whole, "2.6") == 3.0

        assert "€1,234.50" in widget.render_display(price, 1234.5, context()).html
        html = widget.render_field(price, 3.14, context()).html
        assert 'step="0.01"' in html
        assert 'class="field-input-group__prefix">€</span>' in html

    def test_geolocation_bounds(self):
        """Test coordinates are converted and range checked."""
        field = FieldDefinition(name="Spot", field_type="geolocation")
        widget = GeolocationWidget()
        assert widget.prepare_value(field, {"lat": "51.5", "lng": "-0.12"}) == {"lat": 51.5, "lng": -0.12}
        assert widget.prepare_value(field, {"lat": "", "lng": "1"}) is None
        assert widget.validate(field, {"lat": "91", "lng": "181"}).errors == [
            "Latitude must be between -90 and 90",
            "Longitude must be between -180 and 180",
        ]
        assert widget.validate(field, {"lat": "north", "lng": "1"}).errors == ["Invalid coordinate format"]
        assert widget.validate(field, {}).is_valid

        html = widget.render_display(field, {"lat": 51.5, "lng": -0.12}, context()).html
        assert 'href="https://maps.google.com/?q=51.5,-0.12"' in html

    def test_address(self):
        """Test address parts are trimmed and displayed line by line."""
        field = FieldDefinition(name="Home", field_type="address")
        widget = AddressWidget()
        assert widget.prepare_value(field, {"street1": " 1 Main St ", "city": "Springfield"}) == {
            "street1": "1 Main St",
            "street2": "",
            "city": "Springfield",
            "state": "",
            "postal_code": "",
            "country": "",
        }
        assert widget.prepare_value(field, {"city": "  "}) is None

        value = {"street1": "1 Main St", "city": "Springfield", "state": "IL", "postal_code": "62701", "country": "US"}
        assert widget.render_display(field, value, context()).html == (
            '<address class="field-display field-display--address">1 Main St<br>Springfield, IL 62701<br>US</address>'
        )

    def test_address_inputs(self):
        field = FieldDefinition(name="Home", field_type="address", settings={"default_country": "NZ", "show_street2": False})
        html = AddressWidget().render_field(field, None, context()).html
        assert 'name="field_home[country]"' in html
        assert 'value="NZ"' in html
        assert "field_home[street2]" not in html


class TestMediaWidgets:
    """Test image, file, gallery and video widgets."""

    def test_image(self):
        """Test image URLs are checked and previewed."""
        field = FieldDefinition(name="Cover", field_type="image")
        widget = ImageWidget()
        assert widget.validate(field, "javascript:alert(1)").errors == ["Invalid image URL"]
        assert widget.validate(field, "/media/cover.png").is_valid
        assert widget.validate(field, "https://cdn.example.com/cover.png").is_valid

        html = widget.render_field(field, "/media/cover.png", context()).html
        assert 'src="/media/cover.png"' in html
        assert 'accept="image/jpeg,image/png,image/gif,image/webp"' in html
        assert "No image selected" in widget.render_field(field, "", context()).html
        assert "max-width: 100px" in widget.render_display(field, "/media/cover.png", context()).html

    def test_file(self):
        """Test the accept list and download link."""
        field = FieldDefinition(name="Report", field_type="file", settings={"allowed_extensions": ["pdf", ".docx"]})
        widget = FileWidget()
        html = widget.render_field(field, "/files/report.pdf", context()).html
        assert 'accept=".pdf,.docx"' in html
        assert "report.pdf" in html
        assert "\U0001F4D5" in html

        display = widget.render_display(field, "/files/report.pdf", context()).html
        assert 'href="/files/report.pdf"' in display
        assert display.endswith("report.pdf</a>")

    def test_gallery(self):
        """Test gallery values normalize to lists and respect the item limit."""
        field = FieldDefinition(name="Photos", field_type="gallery", settings={"max_items": 1})
        widget = GalleryWidget()
        assert widget.prepare_value(field, '["/a.png", "/b.png"]') == ["/a.png", "/b.png"]
        assert widget.prepare_value(field, ["/a.png", ""]) == ["/a.png"]
        assert widget.prepare_value(field, "/a.png") == ["/a.png"]
        assert widget.prepare_value(field, None) == []
        assert widget.validate(field, ["/a.png", "/b.png"]).errors == ["No more than 1 images are allowed"]

        html = widget.render_field(field, ["/a.png", "/b.png"], context()).html
        assert html.count('class="field-gallery__item"') == 2
        assert 'name="field_photos"' in html

    def test_video_embeds(self):
        """Test YouTube, Vimeo and direct files embed and other URLs link."""
        assert "https://www.youtube.com/embed/dQw4w9WgXcQ" in video_embed_html("https://youtu.be/dQw4w9WgXcQ")
        assert "https://player.vimeo.com/video/12345" in video_embed_html("https://vimeo.com/12345")
        assert video_embed_html("/media/clip.mp4") == '<video src="/media/clip.mp4" controls></video>'
        assert video_embed_html("https://example.com/page") is None

        field = FieldDefinition(name="Clip", field_type="video")
        display = VideoWidget().render_display(field, "https://example.com/page", context()).html
        assert "field-display--video-link" in display


class TestSpecialWidgets:
    """Test password, phone, color and rich text widgets."""

    def test_password_never_echoed(self):
        """Test stored passwords are not written back into the form."""
        field = FieldDefinition(name="Secret", field_type="password")
        widget = PasswordWidget()
        result = widget.render_field(field, "hunter2", context())

        assert "hunter2" not in result.html
        assert 'type="password"' in result.html
        assert "Toggle password visibility" in result.html
        assert """CmsPassword.init('form_field_secret', {"toggle": true, "strength": false});""" in result.assets.init_scripts
        assert "••••••••" in widget.render_display(field, "hunter2", context()).html

    def test_phone(self):
        field = FieldDefinition(name="Mobile", field_type="phone")
        widget = PhoneWidget()
        assert 'type="tel"' in widget.render_field(field, "", context()).html
        assert 'href="tel:+15550109999"' in widget.render_display(field, "+1 (555) 010-9999", context()).html

    def test_color(self):
        """Test the picker, hex input and preview swatch."""
        field = FieldDefinition(name="Tint", field_type="color")
        widget = ColorWidget()
        html = widget.render_field(field, "#FF0000", context()).html
        assert 'type="color"' in html
        assert 'id="form_field_tint_hex"' in html
        assert "background-color: #FF0000;" in html
        assert 'value="#000000"' in widget.render_field(field, None, context()).html
        assert "field-display__swatch" in widget.render_display(field, "#FF0000", context()).html

    def test_wysiwyg(self):
        """Test toolbar presets and HTML display."""
        field = FieldDefinition(name="Body", field_type="html", settings={"toolbar": "minimal"})
        widget = WysiwygWidget()
        assert '"toolbar": "undo redo | bold italic | bullist numlist"' in widget.init_script(field, "form_field_body")
        assert "<p>Hi</p>" in widget.render_display(field, "<p>Hi</p>", context()).html

    def test_markdown(self):
        """Test the toolbar and escaped source."""
        field = FieldDefinition(name="Body", field_type="markdown")
        widget = MarkdownWidget()
        html = widget.render_field(field, "<b>bold</b>", context()).html
        assert html.count('class="field-markdown__btn"') == 9
        assert "&lt;b&gt;bold&lt;/b&gt;" in html
        assert 'id="form_field_body_preview"' in html
        assert 'data-markdown="# Title"' in widget.render_display(field, "# Title", context()).html

    def test_code(self):
        """Test the language selector and escaped display."""
        field = FieldDefinition(name="Snippet", field_type="code", settings={"language": "python", "language_selector": True})
        widget = CodeWidget()
        assert '<option value="python" selected>Python</option>' in widget.render_field(field, "", context()).html
        assert widget.render_display(field, "x < 1", context()).html == (
            '<pre class="field-display field-display--code"><code class="language-python">x &lt; 1</code></pre>'
        )
