# timebill/routes/invoice_routes.py

from flask import Blueprint, render_template, request, redirect, url_for, flash, make_response, current_app
from flask_login import login_required, current_user
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from ..entries import fetch_unbilled_entries, link_entries_to_invoice
from ..extensions import db
from ..importer import ImportSelection, describe_entry
from ..models import Invoice, Project, LineItem, InvoiceSequence
from ..time_stats import duration_seconds, entry_revenue, format_duration

invoice_bp = Blueprint('invoices', __name__)

INVOICE_STATUSES = ('Draft', 'Sent', 'Paid')

def next_invoice_number():
    sequence = InvoiceSequence.query.first()
    if not sequence:
        sequence = InvoiceSequence(next_invoice_num=1)
        db.session.add(sequence)

    invoice_num = sequence.next_invoice_num
    sequence.next_invoice_num += 1
    return f'INV-{invoice_num:04d}'

def new_invoice_for(project):
    invoice = Invoice(
        invoice_number=next_invoice_number(),
        project_id=project.id,
        user_id=current_user.id
    )
    db.session.add(invoice)
    return invoice

def selected_entry_ids():
    ids = request.form.getlist('entry_ids', type=int)
    if not ids and request.is_json:
        ids = [int(value) for value in (request.get_json(silent=True) or {}).get('entry_ids', [])]
    return ids

def build_selection(invoice):
    candidates = fetch_unbilled_entries(current_user.id, project_id=invoice.project_id)
    selection = ImportSelection(candidates)
    for entry_id in selected_entry_ids():
        if entry_id not in selection.selected_ids:
            selection.toggle(entry_id)
    return selection

@invoice_bp.route('/invoices')
@login_required
def invoices():
    all_invoices = Invoice.query.filter_by(user_id=current_user.id).order_by(Invoice.issue_date.desc()).all()
    all_projects = Project.query.filter_by(user_id=current_user.id).order_by(Project.title).all()
    return render_template('invoices.html', invoices=all_invoices, projects=all_projects)

@invoice_bp.route('/create-invoice', methods=['POST'])
@login_required
def create_invoice():
    project_id = request.form.get('project_id')
    if not project_id:
        flash('You must select a project.', 'danger')
        return redirect(url_for('invoices.invoices'))

    project = Project.query.filter_by(id=project_id, user_id=current_user.id).first_or_404()

    new_invoice = new_invoice_for(project)
    db.session.commit()

    flash(f'Invoice {new_invoice.invoice_number} created for project {project.title}.', 'success')
    return redirect(url_for('invoices.invoice_detail', invoice_id=new_invoice.id))

@invoice_bp.route('/invoice/<int:invoice_id>')
@login_required
def invoice_detail(invoice_id):
    invoice = Invoice.query.filter_by(id=invoice_id, user_id=current_user.id).first_or_404()
    return render_template('invoice_detail.html', invoice=invoice, format_duration=format_duration)

@invoice_bp.route('/invoice/<int:invoice_id>/add-item', methods=['POST'])
@login_required
def add_line_item(invoice_id):
    invoice = Invoice.query.filter_by(id=invoice_id, user_id=current_user.id).first_or_404()

    description = request.form.get('description')
    quantity = request.form.get('quantity', 1, type=float)
    unit_price = request.form.get('unit_price', type=float)

    if description and unit_price is not None:
        new_item = LineItem(
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            invoice_id=invoice.id
        )
        db.session.add(new_item)
        db.session.commit()
        flash('Line item added.', 'success')
    else:
        flash('Description and Unit Price are required.', 'danger')

    return redirect(url_for('invoices.invoice_detail', invoice_id=invoice.id))

@invoice_bp.route('/invoice/update-status/<int:invoice_id>', methods=['POST'])
@login_required
def update_invoice_status(invoice_id):
    invoice = Invoice.query.filter_by(id=invoice_id, user_id=current_user.id).first_or_404()
    new_status = request.form.get('status')
    due_date_str = request.form.get('due_date')

    if new_status:
        if new_status not in INVOICE_STATUSES:
            flash(f'Unknown invoice status: {new_status}', 'danger')
            return redirect(url_for('invoices.invoices'))
        invoice.status = new_status

    if due_date_str:
        invoice.due_date = datetime.strptime(due_date_str, '%Y-%m-%d').date()

    db.session.commit()
    flash(f'Invoice {invoice.invoice_number} has been updated.', 'success')
    return redirect(url_for('invoices.invoices'))

@invoice_bp.route('/invoice/<int:invoice_id>/download-pdf')
@login_required
def download_pdf(invoice_id):
    # WeasyPrint loads Pango at import time
    from weasyprint import HTML

    invoice = Invoice.query.filter_by(id=invoice_id, user_id=current_user.id).first_or_404()
    rendered_html = render_template('invoice_pdf.html', invoice=invoice, format_duration=format_duration)
    pdf = HTML(string=rendered_html).write_pdf()
    response = make_response(pdf)
    response.headers['Content-Type'] = 'application/pdf'
    response.headers['Content-Disposition'] = f'attachment; filename=Invoice-{invoice.invoice_number}.pdf'
    return response

@invoice_bp.route('/project/<int:project_id>/generate-invoice', methods=['POST'])
@login_required
def generate_invoice(project_id):
    project = Project.query.filter_by(id=project_id, user_id=current_user.id).first_or_404()

    entries_to_bill = fetch_unbilled_entries(current_user.id, project_id=project.id)
    if not entries_to_bill:
        flash('No unbilled time is available to invoice.', 'warning')
        return redirect(url_for('projects.project_detail', project_id=project.id))

    try:
        new_invoice = new_invoice_for(project)
        line_items = link_entries_to_invoice(new_invoice, entries_to_bill)
        if not line_items:
            db.session.rollback()
            flash('No billable hours were found.', 'info')
            return redirect(url_for('projects.project_detail', project_id=project.id))

        db.session.commit()
        flash(f'Successfully generated Invoice {new_invoice.invoice_number}!', 'success')
        return redirect(url_for('invoices.invoice_detail', invoice_id=new_invoice.id))

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error generating invoice for project {project.id}: {e}", exc_info=True)
        flash('An unexpected error occurred while generating the invoice. Please try again.', 'danger')
        return redirect(url_for('projects.project_detail', project_id=project.id))

@invoice_bp.route('/invoice/<int:invoice_id>/import-time', methods=['GET', 'POST'])
@login_required
def import_time(invoice_id):
    invoice = Invoice.query.filter_by(id=invoice_id, user_id=current_user.id).first_or_404()

    if request.method == 'GET':
        selection = ImportSelection(fetch_unbilled_entries(current_user.id, project_id=invoice.project_id))
        candidates = []
        for entry in selection.candidates:
            seconds = duration_seconds(entry)
            candidates.append({
                'id': entry.id,
                'description': describe_entry(entry),
                'date': entry.start_time.strftime('%Y-%m-%d'),
                'duration_seconds': seconds,
                'duration': format_duration(seconds),
                'hourly_rate': entry.hourly_rate or 0,
                'amount': round(entry_revenue(entry, seconds), 2),
            })
        return {'invoice_id': invoice.id, 'candidates': candidates}

    selection = build_selection(invoice)
    chosen = selection.confirm()
    if not chosen:
        flash('Select at least one time entry to import.', 'warning')
        return redirect(url_for('invoices.invoice_detail', invoice_id=invoice.id))

    try:
        line_items = link_entries_to_invoice(invoice, chosen)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error importing time into invoice {invoice.id}: {e}", exc_info=True)
        flash('An unexpected error occurred while importing time. Please try again.', 'danger')
        return redirect(url_for('invoices.invoice_detail', invoice_id=invoice.id))

    flash(f'Imported {len(line_items)} time entries into {invoice.invoice_number}.', 'success')
    return redirect(url_for('invoices.invoice_detail', invoice_id=invoice.id))

@invoice_bp.route('/invoice/<int:invoice_id>/import-time/preview', methods=['POST'])
@login_required
def import_time_preview(invoice_id):
    invoice = Invoice.query.filter_by(id=invoice_id, user_id=current_user.id).first_or_404()
    selection = build_selection(invoice)
    total_seconds = selection.total_seconds
    return {
        'selected_ids': [entry.id for entry in selection.selected],
        'total_seconds': total_seconds,
        'total': format_duration(total_seconds),
    }
