"""Centralized user-facing text for the reposcout CLI."""

from __future__ import annotations

class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "reposcout – find, classify and open the code repositories on this machine."
    HELP_QUERY = "Free text to match against repository names. Supports lang:<name> and --remote."
    HELP_SEARCH_TOP = "Maximum number of results to display (defaults to the configured max)."
    HELP_SEARCH_SORT = "Ordering used when the query has no free text (recency, last-opened)."
    HELP_SEARCH_REFRESH = "Run discovery synchronously before ranking."
    HELP_SEARCH_REMOTE = "Only show repositories with a remote URL (same as --remote in the query)."
    HELP_SEARCH_WAIT = "Wait for any background discovery started by this query before exiting."
    HELP_SEARCH_FORMAT = (
        "Output format (rich=table, porcelain=tab-separated fields for scripts)."
    )
    HELP_OPEN_TARGET = "Repository directory or workspace file to open."
    HELP_OPEN_EDITOR = "Editor to launch (cursor, vscode). Defaults to the configured editor."
    HELP_OPEN_DRY_RUN = "Record the open and print the command without launching it."
    HELP_REFRESH = "Rediscover repositories, refresh stale classifications and prune missing paths."
    HELP_REBUILD = "Reclassify every discovered repository regardless of staleness."
    HELP_CONFIG = "Show or update the reposcout configuration."
    HELP_SHOW_CONFIG = "Show current configuration."
    HELP_ADD_PATH = "Add a search root."
    HELP_REMOVE_PATH = "Remove a search root."
    HELP_SET_BACKEND = "Set the discovery backend executable (default: es)."
    HELP_SET_EDITOR = "Set the editor used by `reposcout open` (cursor, vscode)."
    HELP_SET_SORT = "Set the default sort policy (recency, last-opened)."
    HELP_SET_MAX_RESULTS = "Set the maximum number of results."
    HELP_SET_STALE_HOURS = "Set the classification staleness threshold in hours."
    HELP_ADD_IGNORED = "Add a directory name (or gitignore-style pattern) to the ignore list."
    HELP_REMOVE_IGNORED = "Remove a directory name from the ignore list."
    HELP_CLEAR_CACHE = "Delete every reposcout cache file in the data directory."
    HELP_DOCTOR = "Run diagnostic checks for the discovery backend, data directory and editor."
    HELP_VERBOSE = "Enable debug logging."

    ERROR_BACKEND_MISSING = "Discovery backend not found"
    ERROR_BACKEND_MISSING_DETAIL = (
        "`{command}` did not respond. Install Everything (voidtools.com) and make sure "
        "the CLI is on PATH, or configure it via `reposcout config --set-backend <path>`."
    )
    ERROR_CONFIG_VALUE_INVALID = "Config value for `{field}` is invalid."
    ERROR_CONFIG_JSON_INVALID = "Config payload must be a JSON object."
    ERROR_EDITOR_INVALID = "Unsupported editor `{value}`. Allowed values: {allowed}."
    ERROR_SORT_INVALID = "Unsupported sort policy `{value}`. Allowed values: {allowed}."
    ERROR_TARGET_MISSING = "Target does not exist: {path}"
    ERROR_EDITOR_LAUNCH = "Failed to open editor: {reason}"
    ERROR_POSITIVE = "{name} must be greater than 0"

    INFO_NO_RESULTS_TITLE = "No codebases found"
    INFO_NO_RESULTS_EMPTY_QUERY = "No .git folders or .code-workspace files found in search paths"
    INFO_NO_RESULTS_QUERY = "No codebases matching '{query}'"
    INFO_REFRESH_RUNNING = "Discovering repositories under {count} search root{plural}..."
    INFO_REFRESH_DONE = (
        "Discovered {found} entr{found_plural}; reclassified {refreshed}; "
        "pruned {removed} missing path{removed_plural}."
    )
    INFO_REBUILD_RUNNING = "Rebuilding language cache for {count} repositor{plural}..."
    INFO_REBUILD_DONE = "Rebuilt language cache for {count} repositor{plural}."
    INFO_OPENING = "Opening {path} with `{command}`."
    INFO_OPEN_DRY_RUN = "Would run: {command}"
    INFO_CONFIG_UPDATED = "Configuration updated."
    INFO_CONFIG_UNCHANGED = "Nothing to update."
    INFO_CACHE_CLEARED = "Removed {count} cache file{plural}."
    INFO_CACHE_CLEAR_NONE = "No cache files to remove."
    INFO_REFRESHING_IN_BACKGROUND = "Results may be outdated; discovery is refreshing in the background."
    INFO_CONFIG_SUMMARY = (
        "Search paths: {paths}\n"
        "Backend: {backend}\n"
        "Editor: {editor}\n"
        "Sort policy: {sort}\n"
        "Max results: {max_results}\n"
        "Stale after: {stale_hours}h\n"
        "Ignored directories: {ignored}"
    )

    DOCTOR_TITLE = "reposcout doctor (v{version})"
    DOCTOR_BACKEND_READY = "`{command}` responded to the availability check."
    DOCTOR_BACKEND_MISSING = "`{command}` is not available."
    DOCTOR_CONFIG_EXISTS = "Config file found at {path}."
    DOCTOR_CONFIG_DEFAULT = "No config file yet; defaults are in use."
    DOCTOR_CONFIG_INVALID = "Config file at {path} could not be parsed."
    DOCTOR_DATA_WRITABLE = "Data directory {path} is writable."
    DOCTOR_DATA_CREATED = "Created data directory {path}."
    DOCTOR_DATA_NOT_WRITABLE = "Data directory {path} is not writable."
    DOCTOR_DATA_CANNOT_CREATE = "Cannot create data directory {path}."
    DOCTOR_EDITOR_FOUND = "Editor command `{command}` found at {path}."
    DOCTOR_EDITOR_MISSING = "Editor command `{command}` is not on PATH."
    DOCTOR_SEARCH_PATHS_OK = "{count} search root{plural} configured."
    DOCTOR_SEARCH_PATHS_MISSING = "Search root does not exist: {path}"
    DOCTOR_ALL_PASSED = "All checks passed."
    DOCTOR_SOME_FAILED = "Some checks failed."

    TABLE_TITLE = "reposcout results"
    TABLE_HEADER_INDEX = "#"
    TABLE_HEADER_NAME = "Name"
    TABLE_HEADER_KIND = "Kind"
    TABLE_HEADER_LANGUAGES = "Languages"
    TABLE_HEADER_PATH = "Path"
    TABLE_HEADER_REMOTE = "Remote"
    TABLE_SORT_PREFIX = "Sort: "
