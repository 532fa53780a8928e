"""
OSLC automation plan documents.

A VerificationPlan names one verification tool plus ordered lists of
parameter definitions and input parameters. It is rendered as RDF/XML in the
OSLC Automation vocabulary, written to a scratch file, and uploaded to the
service's verify endpoint.

Layout of a rendered plan::

    <rdf:RDF xmlns:dcterms=... xmlns:oslc_auto=... xmlns:rdf=...>
      <oslc_auto:AutomationPlan rdf:about="...">
        <oslc_auto:toolName rdf:resource="divine" />
        <oslc_auto:parameterDefinition rdf:resource="compile -f -c" />
        <oslc_auto:inputParameter rdf:resource="42" />
      </oslc_auto:AutomationPlan>
    </rdf:RDF>

Every value goes through ElementTree's attribute escaping, so values holding
markup characters cannot break the document structure.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path

from oslc_verify.errors import FilesystemError, PlanFormatError

LOG = logging.getLogger("oslc_verify.plan")

DCTERMS_NS = "http://purl.org/dc/terms/"
RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
OSLC_AUTO_NS = "http://open-services.net/ns/auto#"

DEFAULT_PLAN_ABOUT = "http://example.com/results/4321"

ET.register_namespace("dcterms", DCTERMS_NS)
ET.register_namespace("rdf", RDF_NS)
ET.register_namespace("oslc_auto", OSLC_AUTO_NS)


def _rdf(name: str) -> str:
    return f"{{{RDF_NS}}}{name}"


def _auto(name: str) -> str:
    return f"{{{OSLC_AUTO_NS}}}{name}"


@dataclass
class VerificationPlan:
    """One job submission: a tool and its ordered parameters and inputs."""

    tool_name: str
    parameter_definitions: list[str] = field(default_factory=list)
    input_parameters: list[str] = field(default_factory=list)
    about: str = DEFAULT_PLAN_ABOUT
    title: str | None = None

    def add_parameter(self, definition: str) -> None:
        self.parameter_definitions.append(definition)

    def add_input(self, reference: str) -> None:
        self.input_parameters.append(reference)

    def to_element(self) -> ET.Element:
        # ElementTree only declares namespaces that appear in tag/attribute
        # names; without a title, dcterms is declared by hand to keep the header fixed.
        root = ET.Element(_rdf("RDF"))
        ap = ET.SubElement(root, _auto("AutomationPlan"), {_rdf("about"): self.about})
        if self.title is None:
            root.set("xmlns:dcterms", DCTERMS_NS)
        else:
            ET.SubElement(ap, f"{{{DCTERMS_NS}}}title").text = self.title
        ET.SubElement(ap, _auto("toolName"), {_rdf("resource"): self.tool_name})
        for definition in self.parameter_definitions:
            ET.SubElement(ap, _auto("parameterDefinition"), {_rdf("resource"): definition})
        for reference in self.input_parameters:
            ET.SubElement(ap, _auto("inputParameter"), {_rdf("resource"): reference})
        return root


def render_plan(plan: VerificationPlan) -> str:
    """Serialize *plan* to an RDF/XML string (no XML declaration)."""
    root = plan.to_element()
    ET.indent(root)
    return ET.tostring(root, encoding="unicode")


def write_plan(plan: VerificationPlan, path: str | Path) -> Path:
    """
    Render *plan* and write it to *path*, replacing any previous plan.

    The write completes before this returns, so the file can be read back
    for upload immediately.

    Raises:
        FilesystemError: The path could not be written.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            '<?xml version="1.0" encoding="utf-8"?>\n' + render_plan(plan) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        raise FilesystemError(target, f"cannot write plan: {exc.strerror or exc}") from exc
    LOG.debug(
        "Wrote plan for %s (%d parameters, %d inputs) to %s",
        plan.tool_name,
        len(plan.parameter_definitions),
        len(plan.input_parameters),
        target,
    )
    return target


def parse_plan(text: str) -> VerificationPlan:
    """
    Parse a rendered plan back into a VerificationPlan.

    Raises:
        PlanFormatError: Not well-formed XML, or not exactly one
            AutomationPlan / toolName element.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise PlanFormatError(f"Plan is not well-formed XML: {exc}") from exc

    if root.tag != _rdf("RDF"):
        raise PlanFormatError(f"Unexpected document root {root.tag!r}")
    plans = root.findall(_auto("AutomationPlan"))
    if len(plans) != 1:
        raise PlanFormatError(f"Expected one AutomationPlan, found {len(plans)}")
    ap = plans[0]

    tools = ap.findall(_auto("toolName"))
    if len(tools) != 1:
        raise PlanFormatError(f"Expected one toolName, found {len(tools)}")

    title_el = ap.find(f"{{{DCTERMS_NS}}}title")
    return VerificationPlan(
        tool_name=tools[0].get(_rdf("resource"), ""),
        parameter_definitions=[
            el.get(_rdf("resource"), "") for el in ap.findall(_auto("parameterDefinition"))
        ],
        input_parameters=[el.get(_rdf("resource"), "") for el in ap.findall(_auto("inputParameter"))],
        about=ap.get(_rdf("about"), DEFAULT_PLAN_ABOUT),
        title=title_el.text if title_el is not None else None,
    )
