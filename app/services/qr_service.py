"""
QR code generation service
"""

import io
import qrcode

from app.services.event_service import EventService

class QRService:
    """Service for generating QR codes"""
    
    @staticmethod
    def generate_event_qr(slug: str, format: str = 'PNG') -> bytes:
        """Generate QR code pointing at the public event page"""
        url = EventService.public_link(slug)
        
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(url)
        qr.make(fit=True)
        
        img = qr.make_image(fill_color="black", back_color="white")
        
        buffer = io.BytesIO()
        img.save(buffer, format=format)
        
        return buffer.getvalue()
