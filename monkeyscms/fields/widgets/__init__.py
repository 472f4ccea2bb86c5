"""
Field widgets.

Each widget renders one or more field types as form inputs and as
read-only display output.
"""

from .base import BaseWidget
from .date import DateTimeWidget, DateWidget, TimeWidget
from .location import AddressWidget, GeolocationWidget, LinkWidget
from .media import FileWidget, GalleryWidget, ImageWidget, VideoWidget
from .number import DecimalWidget, NumberWidget, RangeWidget
from .reference import EntityReferenceWidget, TaxonomyWidget, UserReferenceWidget
from .repeater import RepeaterWidget
from .rich import CodeWidget, JsonWidget, MarkdownWidget, WysiwygWidget
from .selection import CheckboxesWidget, CheckboxWidget, RadioWidget, SelectWidget, SwitchWidget
from .text import (ColorWidget, EmailWidget, HiddenWidget, PasswordWidget,
                   PhoneWidget, SlugWidget, TextareaWidget, TextInputWidget,
                   UrlWidget)

CORE_WIDGETS = [
    TextInputWidget,
    TextareaWidget,
    EmailWidget,
    UrlWidget,
    PhoneWidget,
    PasswordWidget,
    SlugWidget,
    ColorWidget,
    HiddenWidget,
    SelectWidget,
    CheckboxWidget,
    CheckboxesWidget,
    RadioWidget,
    SwitchWidget,
    NumberWidget,
    DecimalWidget,
    RangeWidget,
    DateWidget,
    DateTimeWidget,
    TimeWidget,
    JsonWidget,
    WysiwygWidget,
    MarkdownWidget,
    CodeWidget,
    ImageWidget,
    FileWidget,
    GalleryWidget,
    VideoWidget,
    EntityReferenceWidget,
    TaxonomyWidget,
    UserReferenceWidget,
    LinkWidget,
    GeolocationWidget,
    AddressWidget,
    RepeaterWidget,
]

__all__ = [
    "BaseWidget",
    "CORE_WIDGETS",
] + [widget.__name__ for widget in CORE_WIDGETS]
