import json
from io import BytesIO

import qrcode
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from app.core.exceptions import NotFound
from app.models.appointment import Appointment


def verification_payload(appointment: Appointment) -> dict:
    return {
        "appointment_id": appointment.id,
        "patient_id": appointment.patient_id,
        "patient_name": appointment.patient.name,
        "doctor_id": appointment.doctor_id,
        "appointment_date": appointment.appointment_date.isoformat(),
        "start_time": appointment.start_time,
        "status": appointment.status.value,
    }


def generate_qr_code(appointment: Appointment) -> bytes:
    """PNG check-in code carrying the appointment's verification data."""
    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(json.dumps(verification_payload(appointment)))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, format="PNG")
    return buffered.getvalue()


def prescription_pdf(appointment: Appointment) -> bytes:
    prescription = appointment.prescription
    if not prescription:
        raise NotFound("No prescription found for this appointment")

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter)
    styles = getSampleStyleSheet()
    story = []

    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=24,
        spaceAfter=30
    )
    story.append(Paragraph("Medical Prescription", title_style))

    if appointment.doctor is not None:
        story.append(Paragraph("Doctor Information:", styles['Heading2']))
        story.append(Paragraph(f"Name: Dr. {appointment.doctor.user.name}", styles['Normal']))
        story.append(Paragraph(f"Specialization: {appointment.doctor.specialization}", styles['Normal']))
        story.append(Paragraph(f"License Number: {appointment.doctor.license_number}", styles['Normal']))
        story.append(Spacer(1, 20))

    story.append(Paragraph("Patient Information:", styles['Heading2']))
    story.append(Paragraph(f"Name: {appointment.patient.name}", styles['Normal']))
    story.append(Paragraph(f"Phone: {appointment.patient.phone}", styles['Normal']))
    story.append(Spacer(1, 20))

    story.append(Paragraph("Reason for Visit:", styles['Heading2']))
    story.append(Paragraph(appointment.reason, styles['Normal']))
    story.append(Spacer(1, 20))

    medications = prescription.get("medications") or []
    if medications:
        story.append(Paragraph("Medications:", styles['Heading2']))
        med_data = [["Medication", "Dosage", "Frequency", "Duration"]]
        for med in medications:
            med_data.append([
                med.get('name') or "",
                med.get('dosage') or "",
                med.get('frequency') or "",
                med.get('duration') or "",
            ])

        med_table = Table(med_data)
        med_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
            ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
            ('GRID', (0, 0), (-1, -1), 1, colors.black)
        ]))
        story.append(med_table)
        story.append(Spacer(1, 20))

    if prescription.get("instructions"):
        story.append(Paragraph("Instructions:", styles['Heading2']))
        story.append(Paragraph(prescription["instructions"], styles['Normal']))
        story.append(Spacer(1, 20))

    story.append(Paragraph(f"Date: {appointment.appointment_date.strftime('%Y-%m-%d')}", styles['Normal']))

    doc.build(story)
    return buffer.getvalue()
