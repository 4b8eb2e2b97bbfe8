"""
Add the one-pending-application-per-stall index to stall_applications

Databases created before the index was declared on the model only get it
through this migration; create_all never alters an existing table. Existing
duplicate pending rows must be resolved first, so they are listed and the
migration stops.

Run with: python -m migrations.add_pending_application_index
"""

from sqlalchemy import text

from exhibae.database import engine

INDEX_NAME = "uq_stall_applications_one_pending"


def find_duplicate_pending(conn):
    return conn.execute(
        text("""
            SELECT stall_instance_id, COUNT(*)
            FROM stall_applications
            WHERE status = 'pending'
            GROUP BY stall_instance_id
            HAVING COUNT(*) > 1
        """)
    ).fetchall()


def upgrade():
    with engine.connect() as conn:
        duplicates = find_duplicate_pending(conn)
        if duplicates:
            for instance_id, count in duplicates:
                print(f"❌ Stall instance {instance_id} has {count} pending applications")
            raise SystemExit("Resolve duplicate pending applications before adding the index")

        conn.execute(
            text(f"""
                CREATE UNIQUE INDEX IF NOT EXISTS {INDEX_NAME}
                ON stall_applications (stall_instance_id)
                WHERE status = 'pending'
            """)
        )
        conn.commit()
        print(f"✅ Index {INDEX_NAME} is in place")


def downgrade():
    with engine.connect() as conn:
        conn.execute(text(f"DROP INDEX IF EXISTS {INDEX_NAME}"))
        conn.commit()
        print(f"✅ Dropped index {INDEX_NAME}")


if __name__ == "__main__":
    upgrade()
