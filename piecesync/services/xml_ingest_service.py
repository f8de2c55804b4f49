# piecesync/services/xml_ingest_service.py
import codecs
import math
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence, Tuple

from piecesync.config import config
from piecesync.db.enums import ProgressStatus
from piecesync.errors import ParseError
from piecesync.logger import get_logger
from piecesync.orchestration.progress import ProgressRecorder
from piecesync.schemas.piece import (
    FieldCoercionWarning,
    HeaderMismatch,
    ImportHeader,
    ParsedBatch,
    PieceRecord,
)

logger = get_logger(__name__)

# 每个逻辑字段可识别的标签/属性拼写（含葡语本地化拼写），按顺序取第一个命中的
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "name": ("NOMEPECA", "NAME", "NOME"),
    "piece_type": ("TIPOPRODUTO", "GROUP", "GRUPO", "TYPE", "TIPO"),
    "quantity": ("QUANTIDADE", "QUANTITY", "QTD"),
    "section": ("SECAO", "SEÇÃO", "SECTION"),
    "length": ("COMPRIMENTO", "LENGTH"),
    "weight": ("PESO", "WEIGHT"),
    "unit_volume": ("VOLUMEUNITARIO", "UNIT_VOLUME", "VOLUME_UNITARIO", "VOLUME_UNIT", "VOLUMEUNIT"),
    "material_class": ("CLASSECONCRETO", "CONCRETE_CLASS", "CLASSE_CONCRETO"),
    "piece_ids": ("LISTAID", "PIECE_IDS", "IDS_PECA", "IDSPECA"),
}

HEADER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "project_code": ("OBRA", "PROJECT_CODE", "CODE", "CODIGO"),
    "project_name": ("NAME", "NOME", "PROJECT_NAME"),
    "client_name": ("CLIENTE", "CLIENT", "CLIENT_NAME"),
    "engineer": ("PROJETISTA", "ENGINEER", "ENGENHEIRO"),
}

NON_NEGATIVE_FIELDS = {"weight", "unit_volume"}

_DECLARED_ENCODING = re.compile(rb"""^\s*<\?xml[^>]*encoding\s*=\s*["']([A-Za-z0-9._-]+)["']""")
_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")
_WHITESPACE = re.compile(r"\s+")
_ID_SEPARATORS = re.compile(r"[,;\s]+")


def parse_locale_number(raw) -> Optional[float]:
    '''
    宽松解析数字：去空白，识别小数逗号与千分位
    "1.234,56" / "1234,56" / "1,234.56" -> 1234.56
    无法解析（或为空）返回 None，由调用方决定兜底值
    '''
    if raw is None:
        return None
    if isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = _WHITESPACE.sub("", str(raw))
        if not text:
            return None

        has_comma, has_dot = "," in text, "." in text
        if has_comma and has_dot:
            # 最后出现的分隔符是小数点，另一个是千分位
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        elif has_comma:
            text = text.replace(",", "") if text.count(",") > 1 else text.replace(",", ".")
        elif text.count(".") > 1:
            text = text.replace(".", "")

        try:
            value = float(text)
        except ValueError:
            return None

    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    return tag.upper()


class _Entry:
    """Case-insensitive view over one entry element: child tags first, then attributes."""

    def __init__(self, element: ET.Element):
        self.element = element
        self.children: Dict[str, ET.Element] = {}
        for child in element.iter():
            if child is element:
                continue
            self.children.setdefault(_local_name(child.tag), child)
        self.attributes = {_local_name(k): v for k, v in element.attrib.items()}

    def lookup(self, aliases: Sequence[str]) -> Tuple[Optional[str], Optional[ET.Element]]:
        for alias in aliases:
            if alias in self.children:
                child = self.children[alias]
                return (child.text or "").strip(), child
            if alias in self.attributes:
                return str(self.attributes[alias]).strip(), None
        return None, None


class XmlIngestService:
    """
    Decode and parse detailing export files into neutral PieceRecords.

    Responsibility:
    - Decode bytes (declared encoding, else the configured 8-bit Latin default)
    - Locate the root marker and the per-entry markers
    - Extract fields through their aliases, coercing numbers leniently
    - Combine a multi-file batch: first header is authoritative
    """

    def __init__(
        self,
        *,
        root_markers: Optional[Sequence[str]] = None,
        entry_markers: Optional[Sequence[str]] = None,
        source_encoding: Optional[str] = None,
        report_separator: Optional[str] = None,
    ):
        self.root_markers = tuple(m.upper() for m in (root_markers or config.ROOT_MARKERS))
        self.entry_markers = tuple(m.upper() for m in (entry_markers or config.ENTRY_MARKERS))
        self.source_encoding = source_encoding or config.SOURCE_ENCODING
        self.report_separator = report_separator if report_separator is not None else config.REPORT_SEPARATOR

    def parse_batch(
        self,
        files: Sequence[Tuple[str, bytes]],
        progress: Optional[ProgressRecorder] = None,
    ) -> ParsedBatch:
        '''
        解析一个批次（一个或多个文件）

        :param files: [(file_name, raw_bytes), ...]，第一个文件的表头为准
        :param progress: 可选的进度记录器
        :return: ParsedBatch
        :raises ParseError: 结构错误（缺根标记 / 无构件 / 表头缺字段），整批拒绝
        '''
        if progress:
            progress.emit("parse_batch", ProgressStatus.BEGUN, files=len(files))
        try:
            batch = self._parse_batch(files)
        except ParseError as e:
            logger.error(f"[parse] batch rejected: {e}")
            if progress:
                progress.emit("parse_batch", ProgressStatus.FAILED, error=str(e))
            raise

        logger.info(
            f"[parse] files={len(files)} records={len(batch.records)} "
            f"warnings={len(batch.warnings)} code={batch.header.project_code}"
        )
        if progress:
            progress.emit("parse_batch", ProgressStatus.SUCCEEDED, records=len(batch.records))
        return batch

    def _parse_batch(self, files: Sequence[Tuple[str, bytes]]) -> ParsedBatch:
        if not files:
            raise ParseError("no files in batch")

        header: Optional[ImportHeader] = None
        records: List[PieceRecord] = []
        warnings: List[FieldCoercionWarning] = []
        mismatches: List[HeaderMismatch] = []
        report_names: List[str] = []

        for file_name, raw in files:
            header_fields, file_records, file_warnings = self.parse_file(file_name, raw)

            if header is None:
                header = self._build_header(file_name, header_fields)
            else:
                mismatches.extend(self._compare_header(file_name, header, header_fields))

            report_names.append(header_fields.get("project_name") or file_name)
            records.extend(file_records)
            warnings.extend(file_warnings)

        for m in mismatches:
            logger.warning(
                f"[parse] header mismatch in {m.file_name}: {m.field} "
                f"'{m.found}' != '{m.expected}', first file header kept"
            )

        return ParsedBatch(
            header=header,
            records=records,
            report_label=self.report_separator.join(report_names),
            file_names=[name for name, _ in files],
            warnings=warnings,
            header_mismatches=mismatches,
        )

    def parse_file(
        self,
        file_name: str,
        raw: bytes,
    ) -> Tuple[Dict[str, str], List[PieceRecord], List[FieldCoercionWarning]]:
        '''
        解析单个文件，返回 (表头字段, 构件明细, 字段兜底警告)
        表头字段不在这里校验，是否必填由批次决定
        '''
        root = self._locate_root(file_name, self._load_xml(file_name, raw))

        entries = [el for el in root.iter() if el is not root and _local_name(el.tag) in self.entry_markers]
        if not entries:
            raise ParseError(
                f"no pieces found (expected <{self.entry_markers[0]}> entries)",
                file_name=file_name,
            )

        header_fields = self._extract_header(root)
        records: List[PieceRecord] = []
        warnings: List[FieldCoercionWarning] = []
        for idx, element in enumerate(entries):
            records.append(self._parse_entry(file_name, idx, _Entry(element), warnings))
        return header_fields, records, warnings

    # ---------- decoding / structure ----------

    def _load_xml(self, file_name: str, raw: bytes) -> ET.Element:
        if isinstance(raw, str):
            text = raw
        else:
            encoding = self.source_encoding
            if raw.startswith(codecs.BOM_UTF8):
                encoding = "utf-8-sig"
            else:
                m = _DECLARED_ENCODING.match(raw[:256])
                if m:
                    encoding = m.group(1).decode("ascii")
            try:
                text = raw.decode(encoding)
            except (LookupError, UnicodeDecodeError) as e:
                raise ParseError(f"cannot decode file as {encoding}: {e}", file_name=file_name) from e

        # 已按声明解码，去掉声明避免解析器再次按字节处理
        text = _XML_DECLARATION.sub("", text, count=1)
        try:
            return ET.fromstring(text)
        except ET.ParseError as e:
            raise ParseError(f"malformed XML: {e}", file_name=file_name) from e

    def _locate_root(self, file_name: str, document: ET.Element) -> ET.Element:
        for el in document.iter():
            if _local_name(el.tag) in self.root_markers:
                return el
        raise ParseError(
            f"root marker <{self.root_markers[0]}> not found",
            file_name=file_name,
        )

    def _extract_header(self, root: ET.Element) -> Dict[str, str]:
        attributes = {_local_name(k): str(v).strip() for k, v in root.attrib.items()}
        children = {}
        for child in root:
            tag = _local_name(child.tag)
            if tag not in self.entry_markers and child.text and child.text.strip():
                children.setdefault(tag, child.text.strip())

        fields: Dict[str, str] = {}
        for field_name, aliases in HEADER_ALIASES.items():
            for alias in aliases:
                value = attributes.get(alias) or children.get(alias)
                if value:
                    fields[field_name] = value
                    break
        return fields

    def _build_header(self, file_name: str, fields: Dict[str, str]) -> ImportHeader:
        if not fields.get("project_code"):
            raise ParseError("project code not found in header", file_name=file_name)
        if not fields.get("client_name"):
            raise ParseError("client name not found in header", file_name=file_name)
        return ImportHeader(
            project_code=fields["project_code"],
            project_name=fields.get("project_name", ""),
            client_name=fields["client_name"],
            engineer=fields.get("engineer"),
        )

    def _compare_header(self, file_name: str, header: ImportHeader, fields: Dict[str, str]) -> List[HeaderMismatch]:
        mismatches = []
        code = fields.get("project_code")
        if code and code != header.project_code:
            mismatches.append(HeaderMismatch(
                file_name=file_name, field="project_code", expected=header.project_code, found=code,
            ))
        client = fields.get("client_name")
        if client and client.strip().lower() != header.client_name.strip().lower():
            mismatches.append(HeaderMismatch(
                file_name=file_name, field="client_name", expected=header.client_name, found=client,
            ))
        return mismatches

    # ---------- entries ----------

    def _parse_entry(
        self,
        file_name: str,
        idx: int,
        entry: _Entry,
        warnings: List[FieldCoercionWarning],
    ) -> PieceRecord:
        def text(field_name: str) -> str:
            value, _ = entry.lookup(FIELD_ALIASES[field_name])
            return value or ""

        def number(field_name: str) -> float:
            raw, _ = entry.lookup(FIELD_ALIASES[field_name])
            if raw is None or raw == "":
                return 0.0
            value = parse_locale_number(raw)
            if value is None or (field_name in NON_NEGATIVE_FIELDS and value < 0):
                warnings.append(self._coercion_warning(file_name, idx, field_name, raw))
                return 0.0
            return value

        quantity_value = number("quantity")
        if quantity_value < 0:
            raw, _ = entry.lookup(FIELD_ALIASES["quantity"])
            warnings.append(self._coercion_warning(file_name, idx, "quantity", raw))
            quantity_value = 0.0
        elif not quantity_value.is_integer():
            # 数量只能是整数，小数部分截断
            raw, _ = entry.lookup(FIELD_ALIASES["quantity"])
            warnings.append(self._coercion_warning(file_name, idx, "quantity", raw, int(quantity_value)))

        return PieceRecord(
            name=text("name"),
            piece_type=text("piece_type"),
            quantity=int(quantity_value),
            section=text("section"),
            length=number("length"),
            weight=number("weight"),
            unit_volume=number("unit_volume"),
            material_class=text("material_class"),
            piece_ids=self._extract_piece_ids(entry),
        )

    def _extract_piece_ids(self, entry: _Entry) -> Tuple[str, ...]:
        raw, element = entry.lookup(FIELD_ALIASES["piece_ids"])
        if element is not None and len(element):
            ids = [(child.text or "").strip() for child in element]
        elif raw:
            ids = _ID_SEPARATORS.split(raw)
        else:
            return ()
        return tuple(i for i in ids if i)

    def _coercion_warning(self, file_name: str, idx: int, field_name: str, raw, coerced=0) -> FieldCoercionWarning:
        logger.warning(f"[parse] {file_name} entry #{idx}: field '{field_name}' value {raw!r} coerced to {coerced}")
        return FieldCoercionWarning(
            file_name=file_name,
            entry_index=idx,
            field=field_name,
            raw_value=str(raw),
        )
