"""Cache key builders.

Every per-project key starts with ``project:{id}:`` so a write can drop all
cached reads for that project with one prefix invalidation.
"""


def project_prefix(project_id: int) -> str:
    return f"project:{project_id}:"


class cache_keys:
    @staticmethod
    def project_stats(organization_id: str) -> str:
        return f"projectStats:{organization_id}"

    @staticmethod
    def daily_log_stats(project_id: int) -> str:
        return f"{project_prefix(project_id)}dailyLogStats"

    @staticmethod
    def work_item_stats(project_id: int) -> str:
        return f"{project_prefix(project_id)}workItemStats"

    @staticmethod
    def task_stats(project_id: int) -> str:
        return f"{project_prefix(project_id)}taskStats"
