# app/core/storage_utils.py
import uuid

from app.core.supabase_client import documents_bucket

# Signed document links are short lived: admins open them from the review queue
SIGNED_URL_TTL_SECONDS = 60 * 60


def upload_to_storage(path: str, file_bytes: bytes, content_type: str | None = None) -> str:
    """
    Upload raw bytes to the private documents bucket and return the object path.

    If a file already exists at this path, it will be overwritten
    thanks to the 'upsert' option.

    Args:
        path: Full object path inside the bucket.
              Example: "providers/<uuid>/<uuid>.pdf"
        file_bytes: File content in bytes.
        content_type: MIME type reported by the client, if any.

    Returns:
        The object path (the bucket is private: no public URL exists).

    Raises:
        Any exception raised by Supabase client if upload fails.
    """
    options = {"upsert": "true"}
    if content_type:
        options["content-type"] = content_type
    documents_bucket().upload(path, file_bytes, options)
    return path


def create_signed_url(path: str, expires_in: int = SIGNED_URL_TTL_SECONDS) -> str | None:
    """
    Create a temporary download link for a private object.

    Returns None if Supabase did not return a URL.
    """
    result = documents_bucket().create_signed_url(path, expires_in)
    if isinstance(result, dict):
        return result.get("signedURL") or result.get("signedUrl")
    return None


def delete_from_storage(path: str) -> None:
    """
    Delete a file from Supabase Storage by its object path.

    Example path (relative to bucket):
        'providers/<uuid>/<uuid>.pdf'
    """
    # Supabase Python client expects a list of paths.
    documents_bucket().remove([path])


def document_path(provider_id: uuid.UUID, ext: str) -> str:
    """
    Build the object path for a new provider document.

    Returns:
        "providers/<provider_id>/<uuid4>.<ext>"
    """
    return f"providers/{provider_id}/{generate_filename(ext)}"


def generate_filename(ext: str) -> str:
    """
    Generate a random filename using UUID4.

    Args:
        ext: File extension without dot (e.g. "pdf", "jpg")

    Returns:
        A filename like "<uuid4>.pdf"
    """
    return f"{uuid.uuid4()}.{ext}"
