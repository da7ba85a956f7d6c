# --- resa_lib/services/storage_service.py ---
import json
import logging
import sqlite3

from cpdf_lib.models import LibraryDocument

log = logging.getLogger("resa.storage")


class StorageService:
    """
    Persists the research library (document names, PDF paths and the
    reconstructed page texts) and the chat history in a SQLite database.
    """

    def __init__(self, db_path: str):
        """
        Initializes the service with the path to the SQLite database.
        Args:
            db_path (str): The full file path to the database.
        """
        if not db_path:
            raise ValueError("Database path cannot be empty.")
        self.db_path = db_path

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """
        Creates the documents and messages tables if they do not already exist.
        Safe to run on every application start.
        """
        log.info("Initializing database schema...")
        conn = self._get_connection()
        try:
            with conn:
                self._create_documents_table(conn)
                self._create_messages_table(conn)
            log.info("Database schema checked and is up to date.")
        except sqlite3.Error as e:
            log.error("An error occurred during DB initialization: %s", e)
            raise
        finally:
            conn.close()

    # --- Schema Creation ---
    def _create_documents_table(self, conn: sqlite3.Connection):
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                pdf_path TEXT,
                pages_json TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

    def _create_messages_table(self, conn: sqlite3.Connection):
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sender TEXT NOT NULL,
                text TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

    # --- Document Methods ---
    @staticmethod
    def _row_to_document(row) -> LibraryDocument:
        return LibraryDocument(
            id=row["id"],
            name=row["name"],
            pages=json.loads(row["pages_json"] or "[]"),
            pdf_path=row["pdf_path"],
        )

    def add_document(self, name: str, pdf_path: str, pages: list[str]) -> int:
        log.debug("Adding document '%s' (%d pages).", name, len(pages))
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO documents (name, pdf_path, pages_json) VALUES (?, ?, ?);",
                (name, pdf_path, json.dumps(pages)),
            )
            return cursor.lastrowid

    def replace_pages(self, document_id: int, pages: list[str]) -> bool:
        """Replaces a document's page texts wholesale after a re-parse."""
        log.debug("Replacing pages of document id %d.", document_id)
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE documents SET pages_json = ? WHERE id = ?;",
                (json.dumps(pages), document_id),
            )
            return cursor.rowcount > 0

    def get_all_documents(self) -> list[LibraryDocument]:
        """Returns the library in insertion order; list position is the citation index."""
        log.debug("Fetching all documents.")
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM documents ORDER BY id ASC;").fetchall()
        return [self._row_to_document(row) for row in rows]

    def get_document(self, document_id: int) -> LibraryDocument | None:
        log.debug("Fetching document with id: %d.", document_id)
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE id = ?;", (document_id,)
            ).fetchone()
        return self._row_to_document(row) if row else None

    def delete_document(self, document_id: int) -> bool:
        log.debug("Deleting document with id: %d.", document_id)
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?;", (document_id,))
            return cursor.rowcount > 0

    def clear_documents(self) -> int:
        log.info("Clearing the document library.")
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM documents;")
            return cursor.rowcount

    # --- Chat History Methods ---
    def add_message(self, sender: str, text: str) -> int:
        """Appends one chat message; 'sender' is 'user' or 'ai'."""
        log.debug("Saving %s message (%d chars).", sender, len(text))
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO messages (sender, text) VALUES (?, ?);", (sender, text)
            )
            return cursor.lastrowid

    def get_messages(self) -> list[dict]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT id, sender, text, created_at FROM messages ORDER BY id ASC;"
            ).fetchall()
        return [
            {
                "id": row["id"],
                "sender": row["sender"],
                "text": row["text"],
                "timestamp": row["created_at"],
            }
            for row in rows
        ]

    def clear_messages(self) -> int:
        log.info("Clearing the chat history.")
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM messages;")
            return cursor.rowcount
