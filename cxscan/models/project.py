"""Project data model."""

class Project:
    """Represents a CxSAST project."""
    
    def __init__(self, project_id, name, team_id=None):
        """Initialize a Project.
        
        Args:
            project_id (int): The project ID
            name (str): The project name
            team_id (str, optional): ID of the owning team
        """
        self.id = project_id
        self.name = name
        self.team_id = team_id
    
    def to_dict(self):
        """Convert to dictionary."""
        return {
            'project_id': self.id,
            'project_name': self.name,
            'team_id': self.team_id
        }
    
    @classmethod
    def from_dict(cls, data):
        """Create Project from an API payload or a to_dict() dictionary."""
        project_id = data.get('id')
        if project_id is None:
            project_id = data.get('project_id')
        team_id = data.get('teamId')
        if team_id is None:
            team_id = data.get('team_id')
        return cls(
            project_id=project_id,
            name=data.get('name') or data.get('project_name'),
            team_id=team_id
        )
    
    def __repr__(self):
        return f"Project(id={self.id}, name={self.name})"
