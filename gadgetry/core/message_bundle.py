"""Message bundle decoding."""

from __future__ import annotations

from lxml import etree

from gadgetry.core.errors import ParseError


def xml_parser(encoding: str | None = None) -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, strip_cdata=True, encoding=encoding)


def parse_xml(document: str | bytes) -> etree._Element:
    """Parse bytes as declared by the document, text as already-decoded UTF-8.

    Raises:
        etree.XMLSyntaxError: If the document is not well-formed XML.
    """
    if isinstance(document, bytes):
        return etree.fromstring(document, parser=xml_parser())
    # The text is decoded already: any encoding declaration no longer applies.
    return etree.fromstring(document.encode("utf-8"), parser=xml_parser("utf-8"))


def bundle_from_element(element: etree._Element) -> dict[str, str]:
    messages: dict[str, str] = {}
    for msg in element.iter("msg"):
        name = msg.get("name")
        if name:
            messages[name] = "".join(msg.itertext()).strip()
    return messages


def parse_message_bundle(document: str | bytes) -> dict[str, str]:
    """Decode a <messagebundle> document into a flat name -> text mapping.

    A well-formed document without a messagebundle element yields an empty
    mapping.

    Raises:
        ParseError: If the document is not well-formed XML.
    """
    try:
        root = parse_xml(document)
    except etree.XMLSyntaxError as exc:
        raise ParseError(f"Error parsing message bundle xml: {exc}", document=document) from exc

    if root.tag == "messagebundle":
        return bundle_from_element(root)
    bundle = root.find(".//messagebundle")
    if bundle is None:
        return {}
    return bundle_from_element(bundle)
