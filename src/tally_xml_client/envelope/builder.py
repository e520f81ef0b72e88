"""
Envelope serialization for the Tally XML export protocol.

Envelope layout:
    <ENVELOPE>
      <HEADER>
        <VERSION/> <TALLYREQUEST/> <TYPE/> <ID/>
      </HEADER>
      <BODY>
        <DESC>
          <STATICVARIABLES>
            <SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT>
            <SVCURRENTCOMPANY/>?  <extra static variables/>*
          </STATICVARIABLES>
          <TDL><TDLMESSAGE>                                (collection queries only)
            <COLLECTION NAME=".." ISMODIFY="No">
              <TYPE/> <NATIVEMETHOD/>+ <CHILDOF/>? <FILTER/>*
            </COLLECTION>
            <SYSTEM TYPE="Formulae" NAME="..">formula</SYSTEM>*
          </TDLMESSAGE></TDL>
        </DESC>
        <DATA>                                           (data directives only)
          <TALLYMESSAGE><LEDGER NAME=".."/></TALLYMESSAGE>  or  <COLLECTION NAME="..">..</COLLECTION>
        </DATA>
      </BODY>
    </ENVELOPE>

All text goes through lxml, so '&', '<' and '>' in company names or
formulas are escaped by the serializer and never by hand.
"""

from typing import Optional, Tuple
import logging
import warnings
from lxml import etree

from tally_xml_client.exceptions import InvalidSpecError, OrphanFormulaWarning
from tally_xml_client.formulas.encoder import DialectLike, encode_clause, resolve_dialect
from tally_xml_client.models.requests import (
    BodySpec,
    CollectionSpec,
    DataSpec,
    HeaderSpec,
    RequestSpec,
)


logger = logging.getLogger(__name__)

EXPORT_FORMAT = '$$SysName:XML'


def _text_element(parent: etree._Element, tag: str, text: str, **attrib: str) -> etree._Element:
    element = etree.SubElement(parent, tag, **attrib)
    element.text = text
    return element


def _check_formula_references(body: BodySpec, stacklevel: int) -> None:
    """
    Match FILTER references against formula definitions.

    A reference without a definition is fatal. A definition without a
    reference is sent as-is but reported to the caller.
    """
    referenced = list(body.collection.filters) if body.collection else []
    defined = list(body.formulas)

    missing = [name for name in referenced if name not in body.formulas]
    if missing:
        raise InvalidSpecError(
            f"FILTER references without a formula definition: {missing}\n"
            f"Defined formulas: {defined}"
        )

    orphans = [name for name in defined if name not in referenced]
    if orphans:
        message = f"Formulas defined but never referenced by a FILTER: {orphans}"
        logger.warning(message)
        # +2 skips this function and build_envelope
        warnings.warn(message, OrphanFormulaWarning, stacklevel=stacklevel + 2)


def _build_header(root: etree._Element, header: HeaderSpec) -> None:
    header_elem = etree.SubElement(root, 'HEADER')
    _text_element(header_elem, 'VERSION', header.version)
    _text_element(header_elem, 'TALLYREQUEST', header.request_kind.value)
    _text_element(header_elem, 'TYPE', header.target_type)
    _text_element(header_elem, 'ID', header.target_id)


def _build_collection(tdl_message: etree._Element, collection: CollectionSpec) -> None:
    collection_elem = etree.SubElement(
        tdl_message, 'COLLECTION', NAME=collection.name, ISMODIFY='No'
    )
    _text_element(collection_elem, 'TYPE', collection.entity_type)
    for method in collection.native_methods:
        _text_element(collection_elem, 'NATIVEMETHOD', method)
    if collection.child_of:
        _text_element(collection_elem, 'CHILDOF', collection.child_of)
    for filter_name in collection.filters:
        _text_element(collection_elem, 'FILTER', filter_name)


def _build_data(body_elem: etree._Element, data: DataSpec) -> None:
    data_elem = etree.SubElement(body_elem, 'DATA')
    if data.is_object:
        message = etree.SubElement(data_elem, 'TALLYMESSAGE')
        etree.SubElement(message, data.object_tag, NAME=data.object_name)
    else:
        _text_element(data_elem, 'COLLECTION', data.collection_name, NAME=data.collection_name)


def _build_body(root: etree._Element, body: BodySpec) -> None:
    body_elem = etree.SubElement(root, 'BODY')
    desc = etree.SubElement(body_elem, 'DESC')

    static_vars = etree.SubElement(desc, 'STATICVARIABLES')
    _text_element(static_vars, 'SVEXPORTFORMAT', EXPORT_FORMAT)
    if body.company_context:
        _text_element(static_vars, 'SVCURRENTCOMPANY', body.company_context)
    for name, value in body.static_variables.items():
        _text_element(static_vars, name, value)

    # Flat listings and DATA directives have no TDL block
    if body.collection is not None or body.formulas:
        tdl = etree.SubElement(desc, 'TDL')
        tdl_message = etree.SubElement(tdl, 'TDLMESSAGE')
        if body.collection is not None:
            _build_collection(tdl_message, body.collection)
        for name, expression in body.formulas.items():
            _text_element(tdl_message, 'SYSTEM', expression, TYPE='Formulae', NAME=name)

    if body.data is not None:
        _build_data(body_elem, body.data)


def build_envelope(header: HeaderSpec, body: BodySpec, stacklevel: int = 1) -> str:
    """
    Serialize a complete request envelope.

    Args:
        header: HEADER block values
        body: BODY block values
        stacklevel: Frame the orphan-formula warning is attributed to,
            counted from the caller of build_envelope (as in warnings.warn)

    Returns:
        Envelope XML text with declaration, ready to POST

    Raises:
        InvalidSpecError: If a FILTER references an undefined formula

    Warns:
        OrphanFormulaWarning: If a formula is defined but not referenced

    Example:
        >>> header = HeaderSpec(target_type='Collection', target_id='List of Companies')
        >>> xml = build_envelope(header, BodySpec())
        >>> '<ID>List of Companies</ID>' in xml
        True
    """
    _check_formula_references(body, stacklevel)

    root = etree.Element('ENVELOPE')
    _build_header(root, header)
    _build_body(root, body)

    document = etree.tostring(
        root,
        xml_declaration=True,
        encoding='UTF-8',
        pretty_print=True
    ).decode('utf-8')

    logger.debug(
        f"Built {header.request_kind.value} envelope for {header.target_type}/"
        f"{header.target_id} ({len(document)} chars)"
    )
    return document


def split_request(spec: RequestSpec, dialect: DialectLike = None) -> Tuple[HeaderSpec, BodySpec]:
    """
    Derive HeaderSpec and BodySpec from a RequestSpec.

    Each FilterClause becomes one formula definition and one FILTER
    reference with the same name.

    Returns:
        (HeaderSpec, BodySpec) tuple
    """
    strategy = resolve_dialect(dialect)

    header = HeaderSpec(
        request_kind=spec.request_kind,
        target_type=spec.target_type,
        target_id=spec.target_id,
    )

    collection: Optional[CollectionSpec] = None
    if spec.entity_type is not None:
        collection = CollectionSpec(
            name=spec.target_id,
            entity_type=spec.entity_type,
            native_methods=spec.native_methods,
            child_of=spec.child_of,
            filters=[clause.name for clause in spec.filters],
        )

    formulas = {clause.name: encode_clause(clause, strategy) for clause in spec.filters}

    body = BodySpec(
        company_context=spec.company_context,
        static_variables=spec.static_variables,
        collection=collection,
        formulas=formulas,
        data=spec.data,
    )
    return header, body


def build_request_envelope(spec: RequestSpec, dialect: DialectLike = None) -> str:
    """
    Build the envelope for a RequestSpec.

    Args:
        spec: Validated RequestSpec
        dialect: Formula dialect for CONTAINS clauses (instance or name);
            None selects the default dialect

    Returns:
        Envelope XML text

    Example:
        >>> spec = RequestSpec(
        ...     target_id='LedgerSearch',
        ...     entity_type='Ledger',
        ...     native_methods=['Name', 'Parent'],
        ...     filters=[FilterClause(name='SearchFilter', field_path='$Name', literal='Meril')]
        ... )
        >>> xml = build_request_envelope(spec, dialect='instr')
    """
    header, body = split_request(spec, dialect)
    return build_envelope(header, body, stacklevel=2)
