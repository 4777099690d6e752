"""Database schema for progression state."""

SCHEMA = """
-- Per-user progression counters (one row per user account)
CREATE TABLE IF NOT EXISTS user_progression (
    user_id TEXT PRIMARY KEY,
    xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
    level INTEGER NOT NULL DEFAULT 1,
    rank TEXT NOT NULL DEFAULT 'Novice',
    streak INTEGER NOT NULL DEFAULT 0 CHECK (streak >= 0),
    longest_streak INTEGER NOT NULL DEFAULT 0,
    last_activity_date TEXT,
    total_distance REAL NOT NULL DEFAULT 0,
    total_calories REAL NOT NULL DEFAULT 0,
    total_workouts INTEGER NOT NULL DEFAULT 0,
    version INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Completed sessions already processed (replay guard + lifetime totals)
CREATE TABLE IF NOT EXISTS completed_sessions (
    user_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    goal_id TEXT,
    total_distance REAL NOT NULL DEFAULT 0,
    total_calories REAL NOT NULL DEFAULT 0,
    duration_seconds REAL NOT NULL DEFAULT 0,
    avg_speed REAL NOT NULL DEFAULT 0,
    avg_power REAL NOT NULL DEFAULT 0,
    end_time TEXT NOT NULL,
    recorded_at TEXT NOT NULL,
    PRIMARY KEY (user_id, session_id)
);

-- Pipeline steps finished for a session; a replay re-runs only the rest
CREATE TABLE IF NOT EXISTS session_steps (
    user_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    step TEXT NOT NULL,
    completed_at TEXT NOT NULL,
    PRIMARY KEY (user_id, session_id, step)
);

-- =============================================================================
-- Goals
-- =============================================================================

CREATE TABLE IF NOT EXISTS goals (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    goal_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    start_date TEXT NOT NULL,
    target_date TEXT NOT NULL,
    current_weight REAL NOT NULL,
    target_weight REAL NOT NULL,
    total_distance REAL NOT NULL DEFAULT 0,
    total_calories REAL NOT NULL DEFAULT 0,
    total_workouts INTEGER NOT NULL DEFAULT 0,
    completion_percentage REAL NOT NULL DEFAULT 0
        CHECK (completion_percentage >= 0 AND completion_percentage <= 100),
    last_updated TEXT,
    weekly_progress_json TEXT NOT NULL DEFAULT '[]',
    weight_history_json TEXT NOT NULL DEFAULT '[]',
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Each session counts toward a goal at most once
CREATE TABLE IF NOT EXISTS goal_sessions (
    goal_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    end_time TEXT NOT NULL,
    distance REAL NOT NULL DEFAULT 0,
    calories REAL NOT NULL DEFAULT 0,
    avg_speed REAL NOT NULL DEFAULT 0,
    duration_seconds REAL NOT NULL DEFAULT 0,
    linked_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (goal_id, session_id),
    FOREIGN KEY (goal_id) REFERENCES goals(id)
);

-- =============================================================================
-- Achievements (append-only)
-- =============================================================================

CREATE TABLE IF NOT EXISTS milestones (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    value INTEGER NOT NULL,
    unit TEXT NOT NULL,
    achieved_at TEXT NOT NULL,
    xp_reward INTEGER NOT NULL,
    reward_granted INTEGER NOT NULL DEFAULT 0,
    notified INTEGER NOT NULL DEFAULT 0,
    UNIQUE (user_id, type, value)
);

CREATE TABLE IF NOT EXISTS badges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    description TEXT NOT NULL,
    awarded_at TEXT NOT NULL,
    metadata_json TEXT,
    notified INTEGER NOT NULL DEFAULT 0,
    UNIQUE (user_id, name)
);

-- =============================================================================
-- Quests
-- =============================================================================

CREATE TABLE IF NOT EXISTS quests (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    quest_type TEXT NOT NULL,
    category TEXT NOT NULL,
    progress_current REAL NOT NULL DEFAULT 0,
    progress_target REAL NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    reward_xp INTEGER NOT NULL DEFAULT 100,
    reward_badge TEXT,
    difficulty TEXT NOT NULL DEFAULT 'medium',
    icon TEXT,
    completed_at TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- =============================================================================
-- Notifications
-- =============================================================================

CREATE TABLE IF NOT EXISTS notifications (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    priority TEXT NOT NULL DEFAULT 'medium',
    actions_json TEXT NOT NULL DEFAULT '[]',
    data_json TEXT NOT NULL DEFAULT '{}',
    expires_at TEXT,
    created_at TEXT NOT NULL,
    is_read INTEGER NOT NULL DEFAULT 0,
    read_at TEXT,
    channel TEXT,
    dispatched_at TEXT,
    delivery_error TEXT
);

CREATE INDEX IF NOT EXISTS idx_completed_sessions_goal ON completed_sessions(goal_id, end_time);
CREATE INDEX IF NOT EXISTS idx_goals_user_status ON goals(user_id, status);
CREATE INDEX IF NOT EXISTS idx_goal_sessions_end ON goal_sessions(goal_id, end_time);
CREATE INDEX IF NOT EXISTS idx_milestones_user_achieved ON milestones(user_id, achieved_at);
CREATE INDEX IF NOT EXISTS idx_milestones_user_notified ON milestones(user_id, notified);
CREATE INDEX IF NOT EXISTS idx_milestones_user_reward ON milestones(user_id, reward_granted);
CREATE INDEX IF NOT EXISTS idx_badges_user_awarded ON badges(user_id, awarded_at);
CREATE INDEX IF NOT EXISTS idx_quests_user_status ON quests(user_id, status, end_date);
CREATE INDEX IF NOT EXISTS idx_notifications_user_created ON notifications(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications(user_id, is_read, created_at);
"""
