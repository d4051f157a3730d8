"""
Spreadsheet export of an event's guestbook
"""

import io
from typing import List

import pandas as pd

from app.schemas.submission import SubmissionResponse

COLUMNS = ['Sender', 'Contact', 'Type', 'Message', 'File', 'Approved', 'Favorite', 'Received']

class ExportService:
    """Service for exporting submissions to Excel"""
    
    @staticmethod
    def export_submissions(submissions: List[SubmissionResponse]) -> bytes:
        data = []
        for s in submissions:
            data.append({
                'Sender': s.sender_name,
                'Contact': s.sender_contact or '',
                'Type': s.type,
                'Message': s.content or '',
                'File': (s.storage_meta or {}).get('name', ''),
                'Approved': 'Yes' if s.moderated else 'No',
                'Favorite': 'Yes' if s.is_favorite else 'No',
                'Received': s.created_at.strftime('%Y-%m-%d %H:%M'),
            })
        
        df = pd.DataFrame(data, columns=COLUMNS)
        
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Guestbook')
        
        return buffer.getvalue()
