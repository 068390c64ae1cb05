from flask_sqlalchemy import SQLAlchemy

from dates import utcnow

db = SQLAlchemy()

STATUSES = ('pending', 'done', 'abandoned')
QUADRANTS = ('IU', 'IN', 'NU', 'NN')
DEFAULT_CATEGORIES = ('life', 'work', 'study', 'creative', 'health', 'social', 'product')
UNCATEGORIZED = 'uncategorized'

# Attribute name -> wire (camelCase) name, for every field a client may write.
MUTABLE_FIELDS = {
    'title': 'title',
    'description': 'description',
    'date': 'date',
    'range_start': 'rangeStart',
    'range_end': 'rangeEnd',
    'all_day': 'allDay',
    'start_time': 'startTime',
    'end_time': 'endTime',
    'status': 'status',
    'quadrant': 'quadrant',
    'categories': 'categories',
    'due_at': 'dueAt',
    'completed_at': 'completedAt',
    'parent_id': 'parentId',
    'order': 'order',
}


def _iso(value):
    return value.isoformat() if value is not None else None


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.Text, nullable=False, default='')
    description = db.Column(db.Text)
    date = db.Column(db.Date, index=True)
    range_start = db.Column(db.Date)
    range_end = db.Column(db.Date)
    all_day = db.Column(db.Boolean, nullable=False, default=False)
    start_time = db.Column(db.String(5))
    end_time = db.Column(db.String(5))
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    quadrant = db.Column(db.String(2), nullable=False, default='IN')
    categories = db.Column(db.JSON)
    due_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    # No foreign key: a dangling parent_id is legal and shows up top-level.
    parent_id = db.Column(db.Integer, index=True)
    order = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def apply(self, fields):
        for name, value in fields.items():
            if name not in MUTABLE_FIELDS:
                raise KeyError(name)
            setattr(self, name, value)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'date': _iso(self.date),
            'rangeStart': _iso(self.range_start),
            'rangeEnd': _iso(self.range_end),
            'allDay': bool(self.all_day),
            'startTime': self.start_time,
            'endTime': self.end_time,
            'status': self.status,
            'quadrant': self.quadrant,
            'categories': list(self.categories) if self.categories is not None else None,
            'dueAt': _iso(self.due_at),
            'completedAt': _iso(self.completed_at),
            'parentId': self.parent_id,
            'order': self.order,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Task {self.id} {self.title!r}>'
