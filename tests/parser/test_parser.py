"""Tests for the template tree builder."""

import pytest

from erbproj.core.errors import TemplateParseError
from erbproj.parser import parser as parser_module
from erbproj.parser.ast import NodeKind
from erbproj.parser.source import ByteRange


def kinds(nodes):
    return [node.kind for node in nodes]


class TestCodeNodes:
    """Test embedded-code node construction."""

    def test_content_and_output(self, parse_template):
        """Test plain content and output tags."""
        document = parse_template("<% x = 1 %><%= x %>").document
        assert kinds(document.statements) == [NodeKind.CONTENT, NodeKind.OUTPUT]
        assert document.statements[1].is_output

    def test_comment(self, parse_template):
        """Test ERB comments."""
        node = parse_template("<%# note %>").document.statements[0]
        assert node.kind == NodeKind.COMMENT
        assert node.content == ByteRange(3, 9)

    def test_yield(self, parse_template):
        """Test yield tags."""
        node = parse_template("<%= yield %>").document.statements[0]
        assert node.kind == NodeKind.YIELD
        assert node.is_output

    def test_span_covers_delimiters(self, parse_template):
        """Test that a code node's span is the whole tag."""
        node = parse_template("ab<%= x -%>").document.statements[1]
        assert node.span == ByteRange(2, 11)
        assert node.span.covers(node.content)


class TestControlFlow:
    """Test chains and nesting of control structures."""

    def test_if_else_chain(self, parse_template):
        """Test if/elsif/else/end linking."""
        result = parse_template("<% if a %>1<% elsif b %>2<% else %>3<% end %>")
        assert result.ok
        head = result.document.statements[0]
        assert head.kind == NodeKind.BRANCH
        assert head.keyword == "if"
        assert head.subsequent.keyword == "elsif"
        assert head.subsequent.subsequent.keyword == "else"
        assert head.subsequent.subsequent.subsequent is None
        assert head.end_node.kind == NodeKind.END
        assert kinds(head.statements) == [NodeKind.TEXT]

    def test_end_only_on_head(self, parse_template):
        """Test that clauses do not carry the end node."""
        head = parse_template("<% if a %><% else %><% end %>").document.statements[0]
        assert head.subsequent.end_node is None

    def test_case_when_chain(self, parse_template):
        """Test case/when/else linking with whitespace before the first when."""
        head = parse_template("<% case x %>\n<% when 1 %>a<% when 2 %>b<% else %>c<% end %>").document.statements[0]
        assert head.keyword == "case"
        assert kinds(head.statements) == [NodeKind.TEXT]
        assert [head.subsequent.keyword, head.subsequent.subsequent.keyword] == ["when", "when"]
        assert head.subsequent.subsequent.subsequent.keyword == "else"

    def test_begin_rescue_chain(self, parse_template):
        """Test begin/rescue/else/ensure kinds."""
        head = parse_template(
            "<% begin %>a<% rescue %>b<% else %>c<% ensure %>d<% end %>"
        ).document.statements[0]
        chain = [head, head.subsequent, head.subsequent.subsequent, head.subsequent.subsequent.subsequent]
        assert all(node.kind == NodeKind.EXCEPTION for node in chain)
        assert [node.keyword for node in chain] == ["begin", "rescue", "else", "ensure"]

    def test_loop_body(self, parse_template):
        """Test iterator blocks nest their body."""
        head = parse_template("<% items.each do |i| %><%= i %><% end %>").document.statements[0]
        assert head.kind == NodeKind.LOOP
        assert kinds(head.statements) == [NodeKind.OUTPUT]
        assert head.end_node is not None

    def test_nested_constructs(self, parse_template):
        """Test an if nested in a loop."""
        head = parse_template(
            "<% items.each do |item| %><% if item.valid? %><%= item %><% end %><% end %>"
        ).document.statements[0]
        inner = head.statements[0]
        assert inner.kind == NodeKind.BRANCH
        assert inner.end_node.start == 57
        assert head.end_node.start == 66

    def test_missing_end_is_recoverable(self, parse_template):
        """Test that a missing end is reported, not raised."""
        result = parse_template("<% if a %><%= b %>")
        assert not result.ok
        assert "missing 'end'" in result.defects[0].message
        assert result.document.statements[0].end_node is None

    def test_stray_end_is_recoverable(self, parse_template):
        """Test that an end without an opener is kept as a node."""
        result = parse_template("<% end %>")
        assert kinds(result.document.statements) == [NodeKind.END]
        assert len(result.defects) == 1

    def test_stray_clause_is_recoverable(self, parse_template):
        """Test that an else without an opener is kept as a node."""
        result = parse_template("<% else %>")
        assert kinds(result.document.statements) == [NodeKind.BRANCH]
        assert len(result.defects) == 1

    def test_unterminated_tag_raises(self, parse_template):
        """Test that an unterminated ERB tag is fatal."""
        with pytest.raises(TemplateParseError):
            parse_template("<% if a %><%= b")


class TestMarkup:
    """Test element construction and recovery."""

    def test_element(self, parse_template):
        """Test an element with open tag, body and close tag."""
        element = parse_template('<div class="x"><%= a %></div>').document.statements[0]
        assert element.kind == NodeKind.ELEMENT
        assert element.name == "div"
        assert element.open_tag == ByteRange(0, 15)
        assert element.close_tag == ByteRange(23, 29)
        assert element.span == ByteRange(0, 29)
        assert kinds(element.statements) == [NodeKind.OUTPUT]

    def test_void_element(self, parse_template):
        """Test void elements have no body."""
        statements = parse_template("<br><%= a %>").document.statements
        assert kinds(statements) == [NodeKind.ELEMENT, NodeKind.OUTPUT]
        assert statements[0].close_tag is None

    def test_self_closing_element(self, parse_template):
        """Test self-closing elements have no body."""
        statements = parse_template("<widget/><%= a %>").document.statements
        assert kinds(statements) == [NodeKind.ELEMENT, NodeKind.OUTPUT]

    def test_attribute_code(self, parse_template):
        """Test ERB tags inside an attribute value belong to the attribute."""
        element = parse_template('<div class="<%= cls %>">t</div>').document.statements[0]
        assert kinds(element.attributes) == [NodeKind.ATTRIBUTE]
        assert kinds(element.attributes[0].statements) == [NodeKind.OUTPUT]
        assert kinds(element.statements) == [NodeKind.TEXT]

    def test_element_inside_branch(self, parse_template):
        """Test that elements nest inside control structures."""
        head = parse_template("<% if a %><li><%= x %></li><% end %>").document.statements[0]
        assert kinds(head.statements) == [NodeKind.ELEMENT]
        assert kinds(head.statements[0].statements) == [NodeKind.OUTPUT]

    def test_implicit_close(self, parse_template):
        """Test that a close tag closes skipped elements."""
        result = parse_template("<div><span><%= a %></div>")
        div = result.document.statements[0]
        span = div.statements[0]
        assert div.close_tag is not None
        assert span.close_tag is None
        assert span.span == ByteRange(5, 19)
        assert [defect.message for defect in result.defects] == ["unclosed element <span>"]

    def test_stray_close_tag(self, parse_template):
        """Test that an unmatched close tag is an opaque node."""
        result = parse_template("</p><%= a %>")
        assert kinds(result.document.statements) == [NodeKind.STRAY_CLOSE_TAG, NodeKind.OUTPUT]
        assert len(result.defects) == 1

    def test_close_tag_does_not_cross_code(self, parse_template):
        """Test that a close tag cannot close an element opened outside the construct."""
        result = parse_template("<div><% if a %></div><% end %></div>")
        div = result.document.statements[0]
        head = div.statements[0]
        assert kinds(head.statements) == [NodeKind.STRAY_CLOSE_TAG]
        assert div.close_tag == ByteRange(30, 36)

    def test_end_closes_open_elements(self, parse_template):
        """Test that end implicitly closes elements opened in its body."""
        result = parse_template("<% if a %><p>text<% end %>")
        head = result.document.statements[0]
        assert head.end_node is not None
        assert head.statements[0].close_tag is None
        assert len(result.defects) == 1

    def test_html_comment_keeps_code(self, parse_template):
        """Test HTML comments hold only their ERB tags."""
        comment = parse_template("<!-- a <%= b %> c -->").document.statements[0]
        assert comment.kind == NodeKind.HTML_COMMENT
        assert kinds(comment.statements) == [NodeKind.OUTPUT]
        assert comment.span == ByteRange(0, 21)

    def test_unterminated_html_comment(self, parse_template):
        """Test that an unterminated HTML comment runs to the end."""
        result = parse_template("<!-- open")
        assert result.document.statements[0].span == ByteRange(0, 9)
        assert len(result.defects) == 1

    def test_declaration(self, parse_template):
        """Test doctype declarations."""
        statements = parse_template("<!DOCTYPE html>\n").document.statements
        assert kinds(statements) == [NodeKind.DECLARATION, NodeKind.TEXT]


class TestAttributes:
    """Test attribute and literal nodes inside open tags."""

    def test_attribute_spans(self, parse_template):
        """Test that an attribute spans its name through its closing quote."""
        element = parse_template('<input type="text" disabled>').document.statements[0]
        assert kinds(element.attributes) == [NodeKind.ATTRIBUTE, NodeKind.ATTRIBUTE]
        type_, disabled = element.attributes
        assert type_.name == "type"
        assert type_.span == ByteRange(7, 18)
        assert kinds(type_.statements) == [NodeKind.LITERAL]
        assert type_.statements[0].span == ByteRange(13, 17)
        assert disabled.span == ByteRange(19, 27)

    def test_value_code_splits_literals(self, parse_template):
        """Test ERB tags inside a quoted value between literal runs."""
        element = parse_template('<div class="big <%= b %> wide"></div>').document.statements[0]
        attribute = element.attributes[0]
        assert attribute.span == ByteRange(5, 30)
        assert kinds(attribute.statements) == [NodeKind.LITERAL, NodeKind.OUTPUT, NodeKind.LITERAL]
        assert [part.span for part in attribute.statements] == [
            ByteRange(12, 16),
            ByteRange(16, 24),
            ByteRange(24, 29),
        ]

    def test_unquoted_value(self, parse_template):
        """Test unquoted values and bare names."""
        element = parse_template("<td colspan=2 nowrap></td>").document.statements[0]
        assert [attribute.span for attribute in element.attributes] == [ByteRange(4, 13), ByteRange(14, 20)]

    def test_unquoted_value_code(self, parse_template):
        """Test an output tag as the whole unquoted value."""
        attribute = parse_template("<p class=<%= c %>></p>").document.statements[0].attributes[0]
        assert attribute.span == ByteRange(3, 17)
        assert kinds(attribute.statements) == [NodeKind.OUTPUT]

    def test_attributes_inside_branch(self, parse_template):
        """Test that attributes chosen by a control-flow tag are its statements."""
        element = parse_template(
            '<div <% if a %>class="x"<% else %>class="y"<% end %>></div>'
        ).document.statements[0]
        head = element.attributes[0]
        assert head.kind == NodeKind.BRANCH
        assert kinds(head.statements) == [NodeKind.ATTRIBUTE]
        assert head.subsequent.statements[0].span == ByteRange(34, 43)
        assert head.end_node is not None
        assert element.close_tag == ByteRange(53, 59)

    def test_unterminated_value(self, parse_template):
        """Test that an unterminated value runs to the end."""
        result = parse_template('<p title="open')
        attribute = result.document.statements[0].attributes[0]
        assert attribute.span == ByteRange(3, 14)
        assert "unterminated attribute value" in [defect.message for defect in result.defects]

    def test_parser_logger_is_package_child(self):
        """Test that parser records go through the package logger."""
        assert parser_module.logger.name == "erbproj.parser.parser"
