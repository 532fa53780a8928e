"""Tests for OSLC automation plan rendering, writing and parsing."""

import xml.etree.ElementTree as ET

import pytest

from oslc_verify.errors import FilesystemError, PlanFormatError
from oslc_verify.plan import (
    DCTERMS_NS,
    DEFAULT_PLAN_ABOUT,
    OSLC_AUTO_NS,
    RDF_NS,
    VerificationPlan,
    parse_plan,
    render_plan,
    write_plan,
)

AUTO = f"{{{OSLC_AUTO_NS}}}"
RES = f"{{{RDF_NS}}}resource"


def _automation_plan(text: str) -> ET.Element:
    root = ET.fromstring(text)
    assert root.tag == f"{{{RDF_NS}}}RDF"
    plans = list(root)
    assert len(plans) == 1
    assert plans[0].tag == f"{AUTO}AutomationPlan"
    return plans[0]


class TestRenderPlan:
    def test_divine_plan_structure(self):
        plan = VerificationPlan(
            tool_name="divine",
            parameter_definitions=["compile -f -c -std=c++11"],
            input_parameters=["art-1"],
        )
        ap = _automation_plan(render_plan(plan))

        assert [el.tag for el in ap] == [
            f"{AUTO}toolName",
            f"{AUTO}parameterDefinition",
            f"{AUTO}inputParameter",
        ]
        assert ap.find(f"{AUTO}toolName").get(RES) == "divine"
        assert ap.find(f"{AUTO}parameterDefinition").get(RES) == "compile -f -c -std=c++11"
        assert ap.find(f"{AUTO}inputParameter").get(RES) == "art-1"
        assert ap.get(f"{{{RDF_NS}}}about") == DEFAULT_PLAN_ABOUT

    def test_order_preserved(self):
        params = ["compile -c", "verify --max-memory 4G", "--report"]
        inputs = ["b", "a", "c"]
        plan = VerificationPlan("divine", params, inputs)
        ap = _automation_plan(render_plan(plan))

        assert [el.get(RES) for el in ap.findall(f"{AUTO}parameterDefinition")] == params
        assert [el.get(RES) for el in ap.findall(f"{AUTO}inputParameter")] == inputs

    def test_empty_lists_render_only_tool(self):
        ap = _automation_plan(render_plan(VerificationPlan("cbmc")))
        assert len(ap.findall(f"{AUTO}toolName")) == 1
        assert ap.findall(f"{AUTO}parameterDefinition") == []
        assert ap.findall(f"{AUTO}inputParameter") == []

    def test_namespace_headers_constant(self):
        bare = render_plan(VerificationPlan("divine"))
        full = render_plan(VerificationPlan("nusmv", ["x"], ["y", "z"]))
        for text in (bare, full):
            assert f'xmlns:rdf="{RDF_NS}"' in text
            assert f'xmlns:oslc_auto="{OSLC_AUTO_NS}"' in text
            assert f'xmlns:dcterms="{DCTERMS_NS}"' in text

    def test_markup_characters_are_escaped(self):
        nasty = 'a"b<c>&d\'/>'
        plan = VerificationPlan(nasty, [nasty], [nasty])
        ap = _automation_plan(render_plan(plan))

        assert ap.find(f"{AUTO}toolName").get(RES) == nasty
        assert ap.find(f"{AUTO}parameterDefinition").get(RES) == nasty
        assert ap.find(f"{AUTO}inputParameter").get(RES) == nasty

    def test_title_rendered_as_dcterms(self):
        plan = VerificationPlan("divine", title="nightly check")
        text = render_plan(plan)
        ap = _automation_plan(text)
        assert ap.find(f"{{{DCTERMS_NS}}}title").text == "nightly check"
        assert text.count("xmlns:dcterms") == 1

    def test_add_helpers_append(self):
        plan = VerificationPlan("divine")
        plan.add_parameter("p1")
        plan.add_parameter("p2")
        plan.add_input("i1")
        assert plan.parameter_definitions == ["p1", "p2"]
        assert plan.input_parameters == ["i1"]


class TestParsePlan:
    def test_round_trip(self):
        plan = VerificationPlan(
            tool_name="divine",
            parameter_definitions=["compile -f -c -std=c++11", "check --threads 2"],
            input_parameters=["17", "18"],
            about="http://example.com/results/99",
            title="t",
        )
        assert parse_plan(render_plan(plan)) == plan

    def test_round_trip_escaped_values(self):
        plan = VerificationPlan("a&b", ["<x>"], ['"quoted"'])
        assert parse_plan(render_plan(plan)) == plan

    def test_not_xml(self):
        with pytest.raises(PlanFormatError, match="well-formed"):
            parse_plan("<rdf:RDF")

    def test_wrong_root(self):
        with pytest.raises(PlanFormatError, match="root"):
            parse_plan("<plan/>")

    def test_missing_tool(self):
        text = (
            f'<rdf:RDF xmlns:rdf="{RDF_NS}" xmlns:oslc_auto="{OSLC_AUTO_NS}">'
            '<oslc_auto:AutomationPlan rdf:about="x"/></rdf:RDF>'
        )
        with pytest.raises(PlanFormatError, match="toolName"):
            parse_plan(text)


class TestWritePlan:
    def test_writes_declaration_and_document(self, tmp_path):
        target = tmp_path / "nested" / "temp.xml"
        plan = VerificationPlan("divine", ["compile"], ["5"])

        written = write_plan(plan, target)

        assert written == target
        text = target.read_text(encoding="utf-8")
        assert text.startswith('<?xml version="1.0" encoding="utf-8"?>')
        assert parse_plan(text.split("\n", 1)[1]) == plan

    def test_overwrites_previous_plan(self, tmp_path):
        target = tmp_path / "temp.xml"
        write_plan(VerificationPlan("first"), target)
        write_plan(VerificationPlan("second"), target)
        assert "second" in target.read_text(encoding="utf-8")
        assert "first" not in target.read_text(encoding="utf-8")

    def test_unwritable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(FilesystemError) as excinfo:
            write_plan(VerificationPlan("divine"), blocker / "temp.xml")
        assert excinfo.value.path == blocker / "temp.xml"
