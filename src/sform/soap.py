"""Salesforce Partner SOAP API transport.

A small, blocking client over ``requests``: it renders Partner API envelopes
with ElementTree, posts them, and turns the response bodies into plain
dicts shaped ``{"result": ...}``. It never retries; failures surface as
:class:`~sform.exceptions.TransportError` (or :class:`AuthError` on login).
"""

from __future__ import annotations

import datetime as dt
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Mapping, Optional, Sequence, cast

import requests

from .config import SFConfig
from .exceptions import AuthError, SoapFaultError, TransportError

_logger = logging.getLogger(__name__)

SOAPENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
PARTNER_NS = "urn:partner.soap.sforce.com"
SOBJECT_NS = "urn:sobject.partner.soap.sforce.com"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("soapenv", SOAPENV_NS)
ET.register_namespace("urn", PARTNER_NS)
ET.register_namespace("urn1", SOBJECT_NS)
ET.register_namespace("xsi", XSI_NS)

_XSI_NIL = f"{{{XSI_NS}}}nil"
_XSI_TYPE = f"{{{XSI_NS}}}type"

# Elements that repeat in Partner responses and must always come back as lists
_LIST_KEYS = frozenset({"records", "errors", "fields"})

# Response elements typed xsd:boolean; sObject field values stay strings
_BOOLEAN_KEYS = frozenset({"done", "success", "created", "passwordExpired", "sandbox"})

# Single-quoted SOQL literal, honouring backslash escapes
_LITERAL_OR_SPACE = re.compile(r"('(?:\\.|[^'\\])*')|\s+")

_SOQL_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}

DEFAULT_TIMEOUT = 120.0


# ----------------------------------------------------------------------
# XML helpers
# ----------------------------------------------------------------------
def _q(ns: str, tag: str) -> str:
    return f"{{{ns}}}{tag}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _scalar_to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        # Multi-select picklists travel as a ';'-joined string
        return ";".join(str(v) for v in value)
    return str(value)


def _text_to_scalar(key: str, text: Any) -> Any:
    if key in _BOOLEAN_KEYS and text in ("true", "false"):
        return text == "true"
    return text


def element_to_python(el: ET.Element) -> Any:
    """Convert one response element (and its children) to plain Python."""
    if el.get(_XSI_NIL) == "true":
        return None

    children = list(el)
    if not children:
        return el.text or ""

    out: Dict[str, Any] = {}
    is_sobject = el.get(_XSI_TYPE, "").endswith("sObject")
    for child in children:
        key = _local(child.tag)
        value = _text_to_scalar(key, element_to_python(child))

        if key in _LIST_KEYS:
            out.setdefault(key, []).append(value)
        elif key in out:
            # The Partner API repeats <sf:Id> on query rows
            if key == "Id" and out[key] == value:
                continue
            if not isinstance(out[key], list):
                out[key] = [out[key]]
            out[key].append(value)
        else:
            out[key] = value

    if is_sobject and "type" in out:
        out["attributes"] = {"type": out.pop("type")}
    return out


def _envelope(payload: ET.Element, session_id: Optional[str] = None) -> bytes:
    env = ET.Element(_q(SOAPENV_NS, "Envelope"))
    if session_id:
        header = ET.SubElement(env, _q(SOAPENV_NS, "Header"))
        session_header = ET.SubElement(header, _q(PARTNER_NS, "SessionHeader"))
        ET.SubElement(session_header, _q(PARTNER_NS, "sessionId")).text = session_id
    body = ET.SubElement(env, _q(SOAPENV_NS, "Body"))
    body.append(payload)
    return ET.tostring(env, encoding="utf-8", xml_declaration=True)


def _sobject_element(tag: str, obj: Mapping[str, Any]) -> ET.Element:
    el = ET.Element(_q(PARTNER_NS, tag))
    ET.SubElement(el, _q(SOBJECT_NS, "type")).text = str(obj["type"])
    for name in obj.get("fieldsToNull", ()):
        ET.SubElement(el, _q(SOBJECT_NS, "fieldsToNull")).text = name
    if obj.get("Id"):
        ET.SubElement(el, _q(SOBJECT_NS, "Id")).text = str(obj["Id"])
    for name, value in obj.items():
        if name in ("type", "fieldsToNull", "Id") or value is None:
            continue
        ET.SubElement(el, _q(SOBJECT_NS, name)).text = _scalar_to_text(value)
    return el


def _single_result(response: ET.Element, operation: str) -> Any:
    el = response.find(_q(PARTNER_NS, "result"))
    if el is None:
        raise TransportError(f"{operation}: response carries no <result>")
    return element_to_python(el)


def _parse_body(content: bytes, operation: str, status_code: int) -> ET.Element:
    """Return the first child of <Body>, raising SoapFaultError on a fault."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise TransportError(
            f"{operation}: HTTP {status_code} with a non-XML body: {content[:200]!r}"
        ) from e

    body = root.find(_q(SOAPENV_NS, "Body"))
    if body is None or len(body) == 0:
        raise TransportError(f"{operation}: SOAP response without a Body")

    first = body[0]
    if _local(first.tag) == "Fault":
        # faultcode/faultstring are unqualified, but may inherit a default namespace
        parts = {_local(child.tag): (child.text or "") for child in first}
        code = parts.get("faultcode", "").rsplit(":", 1)[-1]
        raise SoapFaultError(code, parts.get("faultstring", ""), status_code)
    return first


# ----------------------------------------------------------------------
# Session handle
# ----------------------------------------------------------------------
class SoapClient:
    """Authenticated Partner API client bound to one session id."""

    def __init__(
        self,
        http: requests.Session,
        server_url: str,
        session_id: str,
        *,
        user_id: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.http = http
        self.server_url = server_url
        self.session_id = session_id
        self.user_id = user_id
        self.timeout = timeout

    def query_all(self, statement: str) -> Dict[str, Any]:
        payload = ET.Element(_q(PARTNER_NS, "queryAll"))
        ET.SubElement(payload, _q(PARTNER_NS, "queryString")).text = statement
        return {"result": _single_result(self._call("queryAll", payload), "queryAll")}

    def create(self, records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        return self._save("create", records)

    def update(self, records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        return self._save("update", records)

    def delete(self, ids: Sequence[str]) -> Dict[str, Any]:
        payload = ET.Element(_q(PARTNER_NS, "delete"))
        for record_id in ids:
            ET.SubElement(payload, _q(PARTNER_NS, "ids")).text = record_id
        return {"result": self._results(self._call("delete", payload))}

    # --------------------------- Internal helpers --------------------

    def _save(self, operation: str, records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        payload = ET.Element(_q(PARTNER_NS, operation))
        for obj in records:
            payload.append(_sobject_element("sObjects", obj))
        return {"result": self._results(self._call(operation, payload))}

    @staticmethod
    def _results(response: ET.Element) -> List[Any]:
        return [element_to_python(r) for r in response.findall(_q(PARTNER_NS, "result"))]

    def _call(self, operation: str, payload: ET.Element) -> ET.Element:
        return post_envelope(
            self.http,
            self.server_url,
            operation,
            _envelope(payload, self.session_id),
            timeout=self.timeout,
        )


def post_envelope(
    http: requests.Session,
    url: str,
    operation: str,
    envelope: bytes,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> ET.Element:
    """POST one envelope and return the response payload element."""
    headers = {"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": operation}
    _logger.debug("SOAP %s -> %s", operation, url)
    try:
        r = http.post(url, data=envelope, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f"{operation}: {e}") from e

    # Faults arrive as HTTP 500 with a SOAP body; parse before judging status
    element = _parse_body(r.content, operation, r.status_code)
    if r.status_code >= 400:
        raise TransportError(f"{operation}: HTTP {r.status_code}")
    return element


# ----------------------------------------------------------------------
# Transport
# ----------------------------------------------------------------------
class SoapTransport:
    """Logs in with username + password + security token and formats payloads."""

    def __init__(
        self,
        username: str,
        password: str,
        security_token: str = "",
        *,
        login_url: str = "https://login.salesforce.com",
        api_version: str = "60.0",
        timeout: float = DEFAULT_TIMEOUT,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.username = username
        self.password = password
        self.security_token = security_token
        self.login_url = login_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, cfg: SFConfig, **kwargs: Any) -> SoapTransport:
        cfg.require_credentials()
        return cls(
            cast(str, cfg.username),
            cast(str, cfg.password),
            cfg.security_token,
            login_url=cfg.login_url,
            api_version=cfg.api_version,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.login_url}/services/Soap/u/{self.api_version}"

    def login(self) -> SoapClient:
        payload = ET.Element(_q(PARTNER_NS, "login"))
        ET.SubElement(payload, _q(PARTNER_NS, "username")).text = self.username
        ET.SubElement(payload, _q(PARTNER_NS, "password")).text = (
            self.password + self.security_token
        )

        _logger.debug("Logging in as %s via %s", self.username, self.endpoint)
        try:
            response = post_envelope(
                self.http, self.endpoint, "login", _envelope(payload), timeout=self.timeout
            )
        except SoapFaultError as e:
            raise AuthError(f"Login failed for {self.username}: {e}") from e

        result = _single_result(response, "login")
        if not isinstance(result, dict) or not result.get("sessionId"):
            raise AuthError(f"Login for {self.username} returned no session id")
        if result.get("passwordExpired") is True:
            raise AuthError(f"Password for {self.username} has expired")

        return SoapClient(
            self.http,
            result["serverUrl"],
            result["sessionId"],
            user_id=result.get("userId"),
            timeout=self.timeout,
        )

    # --------------------------- Pre-processing ----------------------

    def format_query(self, statement: str) -> str:
        """Collapse whitespace outside string literals."""

        def _sub(m: re.Match) -> str:
            return m.group(1) if m.group(1) is not None else " "

        return _LITERAL_OR_SPACE.sub(_sub, statement).strip()

    def format_object(self, fields: Mapping[str, Any], model_name: str) -> Dict[str, Any]:
        """Partner sObject shape: type + set fields; None-valued fields go to fieldsToNull."""
        obj: Dict[str, Any] = {"type": model_name}
        to_null: List[str] = []
        for name, value in fields.items():
            if name == "Id":
                if value:
                    obj["Id"] = value
            elif value is None:
                to_null.append(name)
            else:
                obj[name] = value
        if to_null:
            obj["fieldsToNull"] = to_null
        return obj

    def escape(self, text: str) -> str:
        """Escape text for use inside a single-quoted SOQL literal."""
        return "".join(_SOQL_ESCAPES.get(ch, ch) for ch in text)
