"""Metadata API (SOAP) client for CustomObject / CustomField descriptors.

Descriptors travel as plain dicts; ``descriptor_to_xml`` and
``xml_to_descriptor`` convert between those dicts and Metadata API XML.
"""
import logging
from typing import Any, Dict, List

import requests
from lxml import etree

from salesforce_mcp.utils.errors import NotFoundError, PlatformError

logger = logging.getLogger(__name__)

PNS = "http://soap.sforce.com/2006/04/metadata"
SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"


# =============================================================================
# DICT <-> XML
# =============================================================================

def _xml_text(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _append_value(parent, tag: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _append_value(parent, tag, item)
        return
    node = etree.SubElement(parent, etree.QName(PNS, tag))
    if isinstance(value, dict):
        for key, child in value.items():
            _append_value(node, key, child)
    else:
        node.text = _xml_text(value)


def descriptor_to_xml(parent, tag: str, metadata_type: str, descriptor: Dict[str, Any]):
    """Append ``<tag xsi:type="met:metadata_type">`` holding ``descriptor`` to ``parent``.

    The ``met`` prefix is declared on the SOAP envelope.
    """
    node = etree.SubElement(parent, etree.QName(PNS, tag))
    node.set(etree.QName(XSI_NS, "type"), f"met:{metadata_type}")
    for key, value in descriptor.items():
        _append_value(node, key, value)
    return node


def _leaf_value(node) -> Any:
    if node.get(etree.QName(XSI_NS, "nil")) == "true":
        return None
    text = node.text or ""
    if text == "true":
        return True
    if text == "false":
        return False
    return text


def xml_to_descriptor(node) -> Dict[str, Any]:
    """Convert an element's children into a dict; repeated tags become lists."""
    result: Dict[str, Any] = {}
    for child in node:
        if not isinstance(child.tag, str):
            continue
        key = etree.QName(child).localname
        value = xml_to_descriptor(child) if len(child) else _leaf_value(child)
        if key in result:
            if not isinstance(result[key], list):
                result[key] = [result[key]]
            result[key].append(value)
        else:
            result[key] = value
    return result


# =============================================================================
# SOAP CLIENT
# =============================================================================

class MetadataClient:
    """Synchronous create/read/update against ``/services/Soap/m/<version>``"""

    def __init__(self, instance_url: str, session_id: str, api_version: str, timeout: float = 120):
        self.endpoint = f"{instance_url.rstrip('/')}/services/Soap/m/{api_version}"
        self.session_id = session_id
        self.timeout = timeout

    def _envelope(self, operation: str):
        envelope = etree.Element(
            etree.QName(SOAP_NS, "Envelope"),
            nsmap={"soapenv": SOAP_NS, "met": PNS, "xsi": XSI_NS},
        )
        header = etree.SubElement(envelope, etree.QName(SOAP_NS, "Header"))
        session_header = etree.SubElement(header, etree.QName(PNS, "SessionHeader"))
        etree.SubElement(session_header, etree.QName(PNS, "sessionId")).text = self.session_id
        body = etree.SubElement(envelope, etree.QName(SOAP_NS, "Body"))
        request = etree.SubElement(body, etree.QName(PNS, operation))
        return envelope, request

    def _call(self, envelope) -> List[Any]:
        """POST the envelope and return the ``<result>`` elements of the response."""
        payload = etree.tostring(envelope, encoding="UTF-8", xml_declaration=True)
        resp = requests.post(
            self.endpoint,
            data=payload,
            headers={"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": '""'},
            timeout=self.timeout,
        )
        try:
            root = etree.fromstring(resp.content)
        except etree.XMLSyntaxError:
            resp.raise_for_status()
            raise PlatformError(f"Unexpected Metadata API response (HTTP {resp.status_code})")

        fault = root.find(f".//{{{SOAP_NS}}}Fault")
        if fault is not None:
            code = fault.findtext("faultcode") or ""
            message = fault.findtext("faultstring") or "Metadata API fault"
            raise PlatformError(message, error_code=code.split(":")[-1] or None)

        return root.findall(f".//{{{PNS}}}result")

    def _save(self, operation: str, metadata_type: str, descriptor: Dict[str, Any]) -> List[Dict[str, Any]]:
        envelope, request = self._envelope(operation)
        descriptor_to_xml(request, "metadata", metadata_type, descriptor)
        logger.debug("%s %s %s", operation, metadata_type, descriptor.get("fullName"))
        return [xml_to_descriptor(result) for result in self._call(envelope)]

    def create(self, metadata_type: str, descriptor: Dict[str, Any]) -> List[Dict[str, Any]]:
        """createMetadata; returns SaveResult dicts ``{fullName, success, errors?}``"""
        return self._save("createMetadata", metadata_type, descriptor)

    def update(self, metadata_type: str, descriptor: Dict[str, Any]) -> List[Dict[str, Any]]:
        """updateMetadata; returns SaveResult dicts ``{fullName, success, errors?}``"""
        return self._save("updateMetadata", metadata_type, descriptor)

    def read(self, metadata_type: str, full_names: List[str]) -> List[Dict[str, Any]]:
        """readMetadata; entries for names that do not exist are omitted."""
        envelope, request = self._envelope("readMetadata")
        etree.SubElement(request, etree.QName(PNS, "type")).text = metadata_type
        for name in full_names:
            etree.SubElement(request, etree.QName(PNS, "fullNames")).text = name

        records = []
        for result in self._call(envelope):
            for node in result.findall(f"{{{PNS}}}records"):
                record = xml_to_descriptor(node)
                # The API answers unknown names with an empty record
                if record.get("fullName"):
                    records.append(record)
        return records

    def read_one(self, metadata_type: str, full_name: str) -> Dict[str, Any]:
        records = self.read(metadata_type, [full_name])
        if not records:
            raise NotFoundError(f"{metadata_type} {full_name} not found")
        return records[0]


def save_succeeded(results: Any) -> bool:
    """``success`` flag of a single SaveResult or the first of a list"""
    if isinstance(results, list):
        return bool(results) and bool(results[0].get("success"))
    return bool(results and results.get("success"))


def save_errors(results: Any) -> str:
    """Join the error messages carried by SaveResult(s)"""
    items = results if isinstance(results, list) else [results]
    messages = []
    for item in items:
        errors = (item or {}).get("errors") or []
        if isinstance(errors, dict):
            errors = [errors]
        messages.extend(e.get("message", "") for e in errors if e.get("message"))
    return "; ".join(messages)
