"""
Shared pytest fixtures for erbproj tests.

This module provides:
- Factories for source buffers, parse results and conversions
- A corpus of templates used by the layout invariant tests
"""

import pytest

from erbproj.converter import ConversionResult, Converter
from erbproj.parser.parser import ParseResult, parse
from erbproj.parser.source import SourceBuffer


TEMPLATE_CORPUS = [
    "",
    "plain text only\n",
    "<div><%= user.name %></div>",
    "<div><%# user.name %></div>",
    "<div><% @counter += 1 %></div>",
    "<% if admin? %>\n  <p>Admin</p>\n<% else %>\n  <p>User</p>\n<% end %>\n",
    "<% case x %>\n<% when 1 %><%= a %>\n<% when 2 %><%= b %>\n<% else %>c\n<% end %>",
    "<% begin %><%= a %><% rescue => e %><%= e.message %><% ensure %><% cleanup %><% end %>",
    "<ul>\n<% items.each do |item| %>\n  <li class=\"item\"><%= item.name %></li>\n<% end %>\n</ul>\n",
    "<p><%= first %> and <%= second %></p>",
    "<div><%= value -%></div>",
    "<%#\n    multiline\n    comment\n%>",
    "<div>\n  <%#\n      multiline\n      comment\n  %>\n</div>",
    "<%#\ntext\nmore\n%>",
    "<%#\n\ttext\n%>",
    "<%#\n日本語\n%>",
    "<%# comment %><% if :cond %>\n<% end %>",
    '<%= "エラー" %>',
    "日本語<%= x %>",
    "<p>日本語</p><%= x %>",
    "<p>éé</p><%= x %>",
    "<div é=\"1\"><%= x %></div>",
    "<div class=\"<%= cls %>\">text</div>",
    "<div class=\"x\"><div class=\"y\"><%= a %></div></div>",
    "<!-- note --><% if a %><!-- <%= b %> --><% end %>",
    "<!DOCTYPE html>\n<html>\n<body>\n<%= yield %>\n</body>\n</html>\n",
    "<script>\nvar x = <%= raw json %>;\n</script>",
    "<div><span><%= a %></div>",
    "</p><%= stray %>",
    "<% if a %><p>unclosed<% end %>",
    "line one\r\n<%= crlf %>\r\n",
    "<%%= not code %> <%= code %>",
    "<input type=\"text\" value=\"<%= v %>\"><br/>",
    "<% form_with model: @user do |f| %>\n  <%= f.text_field :name %>\n<% end %>",
    '<div <% if a %>class="x"<% else %>class="y"<% end %>></div>',
    '<div class="big <%= b %> wide"></div>',
    '<a href="/users/<%= id %>/edit" <% if admin %>data-role="admin"<% end %>>edit</a>',
]


@pytest.fixture
def source_factory():
    """Factory for creating source buffers."""
    def _factory(text: str, path: str = "test.html.erb") -> SourceBuffer:
        return SourceBuffer(path, text)
    return _factory


@pytest.fixture
def parse_template():
    """Factory for parsing template text into a ParseResult."""
    def _parse(text: str) -> ParseResult:
        return parse(SourceBuffer("test.html.erb", text))
    return _parse


@pytest.fixture
def convert():
    """Factory for converting template text."""
    def _convert(text: str, html_visualization: bool = False) -> ConversionResult:
        return Converter(html_visualization=html_visualization).convert("test.html.erb", text)
    return _convert


@pytest.fixture
def ruby(convert):
    """Factory returning only the projected Ruby code."""
    def _ruby(text: str, html_visualization: bool = False) -> str:
        return convert(text, html_visualization=html_visualization).ruby_code
    return _ruby


@pytest.fixture(params=TEMPLATE_CORPUS)
def template(request) -> str:
    """Every template of the shared corpus."""
    return request.param
