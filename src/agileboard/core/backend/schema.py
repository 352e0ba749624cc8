"""
Setup script for a fresh Supabase project.

Run SETUP_SQL once in the project's SQL editor. It is idempotent, so it is
also the fix for "column not found" errors after an upgrade adds columns.
"""

SETUP_SQL = """\
-- agileboard setup (safe to re-run)

-- 1. TABLES
CREATE TABLE IF NOT EXISTS public.profiles (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text NOT NULL,
    avatar_url text,
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS public.sprints (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text NOT NULL,
    start_date date,
    end_date date,
    objective text DEFAULT '',
    status text DEFAULT 'Planned',
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS public.work_items (
    id text PRIMARY KEY,
    type text NOT NULL DEFAULT 'Delivery',
    title text NOT NULL DEFAULT '',
    created_at timestamptz NOT NULL DEFAULT now()
);

ALTER TABLE public.work_items
    ADD COLUMN IF NOT EXISTS description text DEFAULT '',
    ADD COLUMN IF NOT EXISTS priority text DEFAULT 'P3',
    ADD COLUMN IF NOT EXISTS effort integer DEFAULT 0,
    ADD COLUMN IF NOT EXISTS kpi text DEFAULT '',
    ADD COLUMN IF NOT EXISTS kpi_impact text DEFAULT '',
    ADD COLUMN IF NOT EXISTS assignee_id uuid,
    ADD COLUMN IF NOT EXISTS status text DEFAULT 'New',
    ADD COLUMN IF NOT EXISTS column_name text DEFAULT 'New',
    ADD COLUMN IF NOT EXISTS parent_id text,
    ADD COLUMN IF NOT EXISTS sprint_id uuid,
    ADD COLUMN IF NOT EXISTS workstream_id text,
    ADD COLUMN IF NOT EXISTS blocked boolean DEFAULT false,
    ADD COLUMN IF NOT EXISTS block_reason text,
    ADD COLUMN IF NOT EXISTS start_date date,
    ADD COLUMN IF NOT EXISTS end_date date,
    ADD COLUMN IF NOT EXISTS attachments jsonb DEFAULT '[]'::jsonb,
    ADD COLUMN IF NOT EXISTS cost_item text,
    ADD COLUMN IF NOT EXISTS cost_type text,
    ADD COLUMN IF NOT EXISTS cost_value numeric,
    ADD COLUMN IF NOT EXISTS request_num text,
    ADD COLUMN IF NOT EXISTS order_num text,
    ADD COLUMN IF NOT EXISTS billing_status text;

-- 2. REALTIME
DO $$
BEGIN
    ALTER PUBLICATION supabase_realtime ADD TABLE public.profiles, public.sprints, public.work_items;
EXCEPTION WHEN duplicate_object THEN NULL;
END $$;

-- 3. BUCKETS
INSERT INTO storage.buckets (id, name, public) VALUES ('avatars', 'avatars', true) ON CONFLICT (id) DO NOTHING;
INSERT INTO storage.buckets (id, name, public) VALUES ('attachments', 'attachments', true) ON CONFLICT (id) DO NOTHING;

-- 4. PUBLIC POLICIES (no ALTER TABLE on storage.objects, avoids error 42501)
DO $$
BEGIN
    DROP POLICY IF EXISTS "Public insert" ON storage.objects;
    DROP POLICY IF EXISTS "Public select" ON storage.objects;
    DROP POLICY IF EXISTS "Public delete" ON storage.objects;
    DROP POLICY IF EXISTS "Public update" ON storage.objects;

    CREATE POLICY "Public insert" ON storage.objects FOR INSERT WITH CHECK (true);
    CREATE POLICY "Public select" ON storage.objects FOR SELECT USING (true);
    CREATE POLICY "Public delete" ON storage.objects FOR DELETE USING (true);
    CREATE POLICY "Public update" ON storage.objects FOR UPDATE USING (true) WITH CHECK (true);
END $$;
"""
