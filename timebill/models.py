# timebill/models.py

from .extensions import db
from flask_login import UserMixin
from datetime import date, datetime

# -----------------------
# Database Models
# -----------------------

class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False)
    email = db.Column(db.String(150), unique=True, nullable=False)
    password = db.Column(db.String(150), nullable=False)

class Client(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), nullable=True)
    projects = db.relationship('Project', backref='client', lazy=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)


class Project(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    deadline = db.Column(db.Date, nullable=True)
    client_id = db.Column(db.Integer, db.ForeignKey('client.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    hourly_rate = db.Column(db.Float, nullable=True)

    tasks = db.relationship('Task', backref='project', lazy=True, cascade="all, delete-orphan")
    invoices = db.relationship('Invoice', backref='project', lazy=True, cascade="all, delete-orphan")
    time_entries = db.relationship('TimeEntry', backref='project', lazy=True,
                                   order_by='TimeEntry.start_time', cascade="all, delete-orphan")

    @property
    def days_left(self):
        if self.deadline:
            today = date.today()
            delta = self.deadline - today
            return delta.days
        return None

    @property
    def completed_tasks(self):
        return Task.query.filter_by(project_id=self.id, is_completed=True).count()

    @property
    def total_tasks(self):
        return Task.query.filter_by(project_id=self.id).count()

class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(200), nullable=False)
    is_completed = db.Column(db.Boolean, default=False, nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    # Overrides the project's hourly rate for time logged against this task
    override_rate = db.Column(db.Float, nullable=True)

    time_entries = db.relationship('TimeEntry', backref='task', lazy=True)

    @property
    def total_hours_logged(self):
        seconds = sum(
            (entry.end_time - entry.start_time).total_seconds()
            for entry in self.time_entries
            if entry.end_time and entry.end_time >= entry.start_time
        )
        return seconds / 3600

class TimeEntry(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=True)
    description = db.Column(db.String(200), nullable=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=True)  # NULL while the timer is running

    is_billable = db.Column(db.Boolean, default=True, nullable=False)
    hourly_rate = db.Column(db.Float, nullable=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoice.id'), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    @property
    def is_active(self):
        return self.end_time is None

    @property
    def is_billed(self):
        return self.invoice_id is not None

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'task_id': self.task_id,
            'description': self.description,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'is_billable': self.is_billable,
            'hourly_rate': self.hourly_rate,
            'invoice_id': self.invoice_id,
        }

class Invoice(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(50), unique=True, nullable=False)
    issue_date = db.Column(db.Date, nullable=False, default=date.today)
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Draft')  # e.g., Draft, Sent, Paid

    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    line_items = db.relationship('LineItem', backref='invoice', lazy=True, cascade="all, delete-orphan")
    time_entries = db.relationship('TimeEntry', backref='invoice', lazy=True)

    @property
    def total_amount(self):
        return sum(item.amount for item in self.line_items)

class LineItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Float, nullable=False, default=1)
    unit_price = db.Column(db.Float, nullable=False)

    invoice_id = db.Column(db.Integer, db.ForeignKey('invoice.id'), nullable=False)

    @property
    def amount(self):
        return self.quantity * self.unit_price

class InvoiceSequence(db.Model):
    """
    A simple table to store the next available invoice number to prevent race conditions
    and ensure sequential numbering. It should only ever contain one row.
    """
    id = db.Column(db.Integer, primary_key=True)
    next_invoice_num = db.Column(db.Integer, nullable=False, default=1)
