"""Project memory artifacts and the backend that reads and writes them.

Layout (per project):
    <project>/
    ├── CLAUDE.md                      # Primary document
    ├── CLAUDE.local.md                # Personal learnings (gitignored)
    └── .claude/
        ├── rules/*.md                 # Rule files
        ├── skills/<name>/SKILL.md     # Skill files (YAML frontmatter)
        └── learnings.json             # Learning status overlay

Auto-memory lives outside the project, in
`<claude_home>/projects/<project path with "/" as "-">/memory/*.md`.
"""
