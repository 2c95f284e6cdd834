# quillchain/transactions/metadata.py
"""
On-chain note metadata.

Each note operation carries two metadata labels: 674, a CIP-20 message list
wallets display as-is, and 1337, a structured key/value map the application
reads back when restoring notes from the chain. Cardano caps a single
metadata string at 64 bytes, so long values are stored as lists of chunks.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from quillchain.core.models import NoteDraft, NoteOperation, now_iso
from quillchain.utils.validation import MAX_CATEGORY_LEN, MAX_TITLE_LEN, sanitize_text

MAX_METADATA_BYTES = 64
APP_TAG = "Quill"
MESSAGE_LABEL = 674
NOTE_LABEL = 1337

DEFAULT_TITLE = "Untitled Note"
DEFAULT_CATEGORY = "Uncategorized"


def chunk_by_bytes(content: Optional[str], max_bytes: int = MAX_METADATA_BYTES) -> List[str]:
    """Split ``content`` into consecutive pieces of at most ``max_bytes`` UTF-8 bytes.

    A character is never split across two pieces. Empty content yields [''].
    """
    if not content:
        return ['']
    chunks = []
    current = ''
    size = 0
    for char in content:
        width = len(char.encode('utf-8'))
        if current and size + width > max_bytes:
            chunks.append(current)
            current, size = '', 0
        current += char
        size += width
    if current:
        chunks.append(current)
    return chunks


def build_chunked_value(content: Optional[str]) -> Dict[str, Any]:
    chunks = chunk_by_bytes(content or '')
    if len(chunks) <= 1:
        return {'string': chunks[0]}
    return {'list': [{'string': chunk} for chunk in chunks]}


def _flag(value: bool) -> str:
    return 'true' if value else 'false'


def build_note_metadata(operation: NoteOperation, draft: NoteDraft, note_ref: str,
                        operation_timestamp: Optional[str] = None) -> Dict[int, Any]:
    """Metadata for both labels, keyed by label number."""
    draft = draft.normalized()
    stamp = operation_timestamp or now_iso()
    title = sanitize_text(draft.title or DEFAULT_TITLE, MAX_TITLE_LEN) or DEFAULT_TITLE
    category = sanitize_text(draft.category or DEFAULT_CATEGORY, MAX_CATEGORY_LEN) or DEFAULT_CATEGORY
    content_chunks = chunk_by_bytes(draft.content)

    messages = [
        f"Operation: {operation.kind}",
        f"Note ID: {note_ref or 'N/A'}",
        f"Title: {title}",
        f"Category: {category}",
        f"Created: {draft.created_at}",
        f"Updated: {draft.updated_at}",
        f"Pinned: {_flag(draft.is_pinned)}",
        f"Starred: {_flag(draft.is_starred)}",
        f"Archived: {_flag(draft.is_archived)}",
        f"Deleted: {_flag(draft.is_deleted)}",
    ] + content_chunks

    fields = [
        ('operation', {'string': operation.kind}),
        ('noteId', {'string': note_ref or ''}),
        ('noteTitle', {'string': title}),
        ('category', {'string': category}),
        ('isPinned', {'string': _flag(draft.is_pinned)}),
        ('isStarred', {'string': _flag(draft.is_starred)}),
        ('isArchived', {'string': _flag(draft.is_archived)}),
        ('isDeleted', {'string': _flag(draft.is_deleted)}),
        ('createdAt', {'string': draft.created_at}),
        ('updatedAt', {'string': draft.updated_at}),
        ('operationTimestamp', {'string': stamp}),
        ('app', {'string': APP_TAG}),
        ('noteContent', build_chunked_value(draft.content)),
    ]

    return {
        MESSAGE_LABEL: {'msg': messages},
        NOTE_LABEL: {'map': [{'k': {'string': key}, 'v': value} for key, value in fields]},
    }


def _plain(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ''.join(part for part in (_plain(v) for v in value) if part)
    if isinstance(value, dict):
        if 'string' in value:
            return value['string']
        if isinstance(value.get('list'), list):
            return ''.join(part for part in (_plain(v) for v in value['list']) if part)
    if value is None:
        return None
    return str(value)


def decode_structured_metadata(metadata: Optional[Dict]) -> Optional[Dict[str, str]]:
    """Flatten label 1337 into ``{key: string}``, joining chunk lists.

    Accepts both the tagged ``{'map': [{'k': .., 'v': ..}]}`` form and the
    plain JSON object indexers usually return.
    """
    if not isinstance(metadata, dict):
        return None
    label = metadata.get(str(NOTE_LABEL), metadata.get(NOTE_LABEL))
    if not isinstance(label, dict):
        return None

    decoded = {}
    if isinstance(label.get('map'), list):
        for entry in label['map']:
            if not isinstance(entry, dict):
                continue
            key = _plain(entry.get('k'))
            value = _plain(entry.get('v'))
            if key and value is not None:
                decoded[key] = value
    else:
        for key, value in label.items():
            text = _plain(value)
            if text is not None:
                decoded[str(key)] = text
    return decoded


@dataclass
class RestoredNote:
    """A note reconstructed from on-chain metadata"""
    note_id: Optional[str]
    title: str
    content: str
    category: str
    is_pinned: bool
    is_starred: bool
    is_archived: bool
    is_deleted: bool
    created_at: Optional[str]
    updated_at: Optional[str]
    tx_hash: Optional[str]
    operation: Optional[str] = None


def restore_note(tx_info: Dict) -> Optional[RestoredNote]:
    fields = decode_structured_metadata(tx_info.get('metadata'))
    if not fields or not (fields.get('noteId') or fields.get('noteTitle')):
        return None
    return RestoredNote(
        note_id=fields.get('noteId') or None,
        title=fields.get('noteTitle') or 'Untitled',
        content=fields.get('noteContent') or '',
        category=fields.get('category') or DEFAULT_CATEGORY,
        is_pinned=fields.get('isPinned') == 'true',
        is_starred=fields.get('isStarred') == 'true',
        is_archived=fields.get('isArchived') == 'true',
        is_deleted=fields.get('isDeleted') == 'true',
        created_at=fields.get('createdAt'),
        updated_at=fields.get('updatedAt'),
        tx_hash=tx_info.get('tx_hash'),
        operation=fields.get('operation'),
    )
