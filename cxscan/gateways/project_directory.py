"""Project and team lookups against the CxSAST REST API."""

from datetime import datetime
from cxscan.errors import NotFoundError
from cxscan.models.project import Project
from cxscan.models.scan_summary import ScanSummary


def normalize_team_path(team):
    """Normalize 'CxServer\\SP\\Company' or 'CxServer/SP/Company' to '/CxServer/SP/Company'."""
    path = str(team).strip().replace('\\', '/')
    path = '/'.join(part for part in path.split('/') if part)
    return f"/{path}"


class ProjectDirectory:
    """Resolve teams, projects and their latest scans."""

    def __init__(self, api_client, debug_logger=None):
        """Initialize the directory.

        Args:
            api_client (APIClient): HTTP client
            debug_logger (DebugLogger, optional): Debug logger instance
        """
        self.api_client = api_client
        self.logger = debug_logger

    def get_team_id(self, team):
        """Return the ID of a team given its full path.

        Raises:
            NotFoundError: If no team has that path
        """
        wanted = normalize_team_path(team).lower()
        for team_data in self.api_client.get('/cxrestapi/auth/teams') or []:
            full_name = team_data.get('fullName') or team_data.get('name') or ''
            if normalize_team_path(full_name).lower() == wanted:
                return team_data.get('id')
        raise NotFoundError(f"Team not found: {team}")

    def resolve_project_id(self, team, name):
        """Return the ID of project ``name`` owned by ``team``.

        Raises:
            NotFoundError: If the team or project does not exist
        """
        team_id = self.get_team_id(team)
        if self.logger:
            self.logger.log(f"Looking up project '{name}' in team {team} ({team_id})")
        try:
            projects = self.api_client.get('/cxrestapi/projects', params={'projectName': name, 'teamId': team_id})
        except NotFoundError:
            projects = None
        for project_data in projects or []:
            project = Project.from_dict(project_data)
            if project.name == name:
                return project.id
        raise NotFoundError(f"Project '{name}' not found in team {team}")

    def get_project(self, project_id):
        """Return the Project with the given ID."""
        return Project.from_dict(self.api_client.get(f'/cxrestapi/projects/{project_id}') or {})

    def latest_scan_id(self, project_id):
        """Return the ID of the most recent finished scan of a project.

        Raises:
            NotFoundError: If the project has no finished scan
        """
        scan = self._latest_scan(project_id)
        return scan.get('id')

    def get_last_scan_date(self, project_id):
        """Return when the most recent finished scan started."""
        scan = self._latest_scan(project_id)
        started = ((scan.get('dateAndTime') or {}).get('startedOn'))
        if not started:
            return None
        try:
            return datetime.fromisoformat(started.rstrip('Z'))
        except ValueError:
            return None

    def _latest_scan(self, project_id):
        scans = self.api_client.get('/cxrestapi/sast/scans', params={
            'projectId': project_id,
            'scanStatus': 'Finished',
            'last': 1
        })
        if not scans:
            raise NotFoundError("No finished scan found", project_id=project_id)
        return scans[0]

    def get_scan_summary(self, scan_id):
        """Return the server-side severity statistics of a scan."""
        data = self.api_client.get(f'/cxrestapi/sast/scans/{scan_id}/resultsStatistics')
        if not data:
            raise NotFoundError("No statistics for scan", scan_id=scan_id)
        return ScanSummary.from_statistics(scan_id, data)

    def delete_project(self, project_id, delete_running_scans=False):
        """Delete a project."""
        if self.logger:
            self.logger.log(f"Deleting project {project_id} (deleteRunningScans={delete_running_scans})")
        self.api_client.delete(f'/cxrestapi/projects/{project_id}',
                               json_data={'deleteRunningScans': delete_running_scans})
        return True
