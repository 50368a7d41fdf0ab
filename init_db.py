# init_db.py
import logging

import psycopg

from config import DATABASE_URL

logger = logging.getLogger(__name__)

# Schema bootstrap; IF NOT EXISTS keeps it safe to run on every start
INIT_SQL = """
-- 1. Enum types for the lifecycle fields
DO $$ BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'project_status') THEN
        CREATE TYPE project_status AS ENUM
            ('open', 'in_progress', 'in_review', 'payout_project', 'completed', 'cancelled');
    END IF;
    IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'proposal_status') THEN
        CREATE TYPE proposal_status AS ENUM ('pending', 'accepted', 'rejected', 'withdrawn');
    END IF;
END $$;

-- 2. profiles: one row per authenticated user, id = token subject
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    email VARCHAR(255) NOT NULL DEFAULT '',
    full_name VARCHAR(255) NOT NULL DEFAULT '',
    avatar_url VARCHAR(1024) NOT NULL DEFAULT '',
    bio TEXT NOT NULL DEFAULT '',
    roles TEXT[] NOT NULL DEFAULT ARRAY['freelancer'],
    is_admin BOOLEAN NOT NULL DEFAULT FALSE,
    credit BIGINT NOT NULL DEFAULT 0 CHECK (credit >= 0),
    plan VARCHAR(50) NOT NULL DEFAULT 'free',
    plan_status VARCHAR(50) NOT NULL DEFAULT 'inactive',
    total_earned NUMERIC(14, 2) NOT NULL DEFAULT 0,
    total_spent NUMERIC(14, 2) NOT NULL DEFAULT 0,
    projects_completed INT NOT NULL DEFAULT 0,
    projects_posted INT NOT NULL DEFAULT 0,
    rating NUMERIC(4, 2) NOT NULL DEFAULT 0,
    total_ratings INT NOT NULL DEFAULT 0,
    communication_rating NUMERIC(4, 2) NOT NULL DEFAULT 0,
    quality_rating NUMERIC(4, 2) NOT NULL DEFAULT 0,
    timeliness_rating NUMERIC(4, 2) NOT NULL DEFAULT 0,
    value_rating NUMERIC(4, 2) NOT NULL DEFAULT 0,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

-- 3. categories: posting fee per category
CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    name_en VARCHAR(255) NOT NULL,
    name_lo VARCHAR(255) NOT NULL DEFAULT '',
    posting_fee BIGINT CHECK (posting_fee >= 0)
);

-- 4. projects
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    client_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    title VARCHAR(255) NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    category_id TEXT,
    budget NUMERIC(14, 2) NOT NULL DEFAULT 0,
    budget_type VARCHAR(20) NOT NULL DEFAULT 'fixed',
    status project_status NOT NULL DEFAULT 'open',
    posting_fee BIGINT NOT NULL DEFAULT 0,
    proposals_count INT NOT NULL DEFAULT 0,
    accepted_freelancer_id TEXT REFERENCES profiles(id) ON DELETE SET NULL,
    accepted_proposal_id TEXT,
    deadline TIMESTAMPTZ,
    client_rated BOOLEAN NOT NULL DEFAULT FALSE,
    freelancer_rated BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    completed_at TIMESTAMPTZ
);

-- 5. proposals: one bid per freelancer per project
CREATE TABLE IF NOT EXISTS proposals (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    freelancer_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    cover_letter TEXT NOT NULL DEFAULT '',
    proposed_budget NUMERIC(14, 2) NOT NULL DEFAULT 0,
    proposed_rate NUMERIC(14, 2),
    estimated_duration VARCHAR(100) NOT NULL DEFAULT '',
    status proposal_status NOT NULL DEFAULT 'pending',
    fee_paid BIGINT NOT NULL DEFAULT 0,
    processed_by TEXT,
    processed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    UNIQUE (project_id, freelancer_id)
);

-- 6. transactions: append-only credit movements
CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    project_id TEXT,
    type VARCHAR(50) NOT NULL,
    direction VARCHAR(3) NOT NULL CHECK (direction IN ('in', 'out')),
    amount NUMERIC(14, 2) NOT NULL CHECK (amount > 0),
    currency VARCHAR(10) NOT NULL DEFAULT 'LAK',
    previous_balance NUMERIC(14, 2) NOT NULL DEFAULT 0,
    new_balance NUMERIC(14, 2) NOT NULL DEFAULT 0,
    status VARCHAR(20) NOT NULL DEFAULT 'completed',
    description TEXT NOT NULL DEFAULT '',
    reference TEXT UNIQUE,          -- idempotency key for refunds/payouts
    source VARCHAR(20),             -- withdrawals: credit / total_earned / all
    account_name VARCHAR(255),
    account_number VARCHAR(100),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- 6b. payments: gateway payment intents, confirmed or failed by the webhook
CREATE TABLE IF NOT EXISTS payments (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    purpose VARCHAR(20) NOT NULL DEFAULT 'topup',
    amount NUMERIC(14, 2) NOT NULL CHECK (amount > 0),
    credits BIGINT NOT NULL CHECK (credits > 0),
    currency VARCHAR(10) NOT NULL DEFAULT 'LAK',
    description TEXT NOT NULL DEFAULT '',
    status VARCHAR(20) NOT NULL DEFAULT 'pending',
    gateway_status VARCHAR(50),
    amount_paid NUMERIC(14, 2),
    transaction_id TEXT,
    replaced_by TEXT,
    failure_reason TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    confirmed_at TIMESTAMPTZ
);

-- 7. notifications
CREATE TABLE IF NOT EXISTS notifications (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    type VARCHAR(50) NOT NULL,
    title VARCHAR(255) NOT NULL,
    message TEXT NOT NULL,
    project_id TEXT,
    proposal_id TEXT,
    amount NUMERIC(14, 2),
    related_user_id TEXT,
    read BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- 8. favorites: id = '{user_id}_{project_id}'
CREATE TABLE IF NOT EXISTS favorites (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- 9. ratings: one per rater per project
CREATE TABLE IF NOT EXISTS ratings (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    rater_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    rated_user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    rater_type VARCHAR(20) NOT NULL,
    communication INT NOT NULL CHECK (communication BETWEEN 1 AND 5),
    quality INT NOT NULL CHECK (quality BETWEEN 1 AND 5),
    timeliness INT NOT NULL CHECK (timeliness BETWEEN 1 AND 5),
    value INT NOT NULL CHECK (value BETWEEN 1 AND 5),
    rating NUMERIC(3, 2) NOT NULL,
    review TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ DEFAULT NOW(),
    UNIQUE (project_id, rater_id)
);

CREATE INDEX IF NOT EXISTS idx_projects_client ON projects(client_id);
CREATE INDEX IF NOT EXISTS idx_proposals_project ON proposals(project_id);
CREATE INDEX IF NOT EXISTS idx_proposals_freelancer ON proposals(freelancer_id);
CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id);
CREATE INDEX IF NOT EXISTS idx_payments_user ON payments(user_id);
CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, read);
"""

# Columns added after the first release: (table, column, definition)
# Older databases get them through ALTER TABLE on startup
LATE_COLUMNS = [
    ("proposals", "fee_paid", "BIGINT NOT NULL DEFAULT 0"),
    ("proposals", "processed_by", "TEXT"),
    ("proposals", "processed_at", "TIMESTAMPTZ"),
    ("transactions", "reference", "TEXT UNIQUE"),
    ("transactions", "source", "VARCHAR(20)"),
    ("projects", "client_rated", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("projects", "freelancer_rated", "BOOLEAN NOT NULL DEFAULT FALSE"),
]


def init_database() -> bool:
    """
    Create the tables and patch older ones with missing columns.

    Runs on a plain synchronous connection because it happens once,
    before the server takes requests.
    """
    try:
        logger.info("Checking database schema")
        with psycopg.connect(DATABASE_URL) as conn:
            with conn.cursor() as cur:
                cur.execute(INIT_SQL)

                # --- Auto-migration ---
                for table, column, definition in LATE_COLUMNS:
                    cur.execute(
                        "SELECT column_name FROM information_schema.columns "
                        "WHERE table_name = %s AND column_name = %s",
                        (table, column),
                    )
                    if not cur.fetchone():
                        logger.info("Adding missing column %s.%s", table, column)
                        cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

            conn.commit()
            logger.info("Database schema is up to date")
            return True
    except psycopg.Error:
        logger.exception("Database initialization failed")
        return False


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_database()
