"""
HISAB - Sample Data
===================

Starter dataset loaded from the Setup page into an empty store: five
projects, their first transactions, the Neuro milestone plan and a few
follow-up items.

Child rows point at their project through `project` (the project name);
LedgerService.seed() swaps it for the real identifier once the project
rows exist.
"""

SAMPLE_PROJECTS = [
    {
        'name': 'Linkist',
        'total_value': 240000,
        'status': 'active',
        'client_name': 'Linkist Client',
        'notes': 'Billed ₹40,000 (get paid by 15th), Received ₹2,00,000',
    },
    {
        'name': 'Neuro (Neurosense)',
        'total_value': 275000,
        'status': 'in_process',
        'client_name': 'Neurosense',
        'notes': 'Total value ₹2,75,000, Received ₹1,10,000 (40%), '
                 'Milestones: M2=20%=55K, M3=30%=82.5K, M4=10%=27.5K',
    },
    {
        'name': '4C',
        'total_value': 150000,
        'status': 'pending',
        'client_name': '4C Client',
        'notes': 'Proposal ₹1,50,000, Received ₹50,000',
    },
    {
        'name': 'Headz',
        'total_value': 0,  # no PO yet
        'status': 'pending',
        'client_name': 'Headz Client',
        'notes': 'Pending PO from Harita, need to send 50% invoice after PO',
    },
    {
        'name': 'Various',
        'total_value': 280000,
        'status': 'active',
        'client_name': 'Multiple Clients',
        'notes': '₹2,80,000 received by hand on 20th Nov',
    },
]

SAMPLE_TRANSACTIONS = [
    {
        'project': 'Linkist',
        'date': '2024-11-15',
        'type': 'payment_received',
        'amount': 200000,
        'mode': 'bank',
        'notes': 'Initial payment received',
    },
    {
        'project': 'Linkist',
        'date': '2024-12-01',
        'type': 'bill_sent',
        'amount': 40000,
        'mode': 'bank',
        'notes': 'Bill sent, payment due by 15th',
    },
    {
        'project': 'Neuro (Neurosense)',
        'date': '2024-10-15',
        'type': 'payment_received',
        'amount': 110000,
        'mode': 'bank',
        'notes': 'Received 40% of project value',
    },
    {
        'project': '4C',
        'date': '2024-11-01',
        'type': 'payment_received',
        'amount': 50000,
        'mode': 'bank',
        'notes': 'Partial payment received',
    },
    {
        'project': 'Various',
        'date': '2024-11-20',
        'type': 'by_hand',
        'amount': 280000,
        'mode': 'by_hand',
        'notes': 'Received by hand on 20th Nov',
    },
]

SAMPLE_MILESTONES = [
    {
        'project': 'Neuro (Neurosense)',
        'name': 'M1 - Initial Development',
        'percentage': 40,
        'amount': 110000,
        'status': 'paid',
        'notes': 'Completed and paid',
    },
    {
        'project': 'Neuro (Neurosense)',
        'name': 'M2 - Core Features',
        'percentage': 20,
        'amount': 55000,
        'status': 'pending',
        'notes': '20% milestone pending',
    },
    {
        'project': 'Neuro (Neurosense)',
        'name': 'M3 - Integration',
        'percentage': 30,
        'amount': 82500,
        'status': 'pending',
        'notes': '30% milestone pending',
    },
    {
        'project': 'Neuro (Neurosense)',
        'name': 'M4 - Final Deployment',
        'percentage': 10,
        'amount': 27500,
        'status': 'pending',
        'notes': '10% final milestone',
    },
]

SAMPLE_ACTION_ITEMS = [
    {
        'project': 'Headz',
        'description': 'Send invoice for advance by 15th Jan',
        'due_date': '2024-01-15',
        'status': 'pending',
    },
    {
        'project': 'Neuro (Neurosense)',
        'description': 'Follow up to get advance for M2',
        'due_date': '2024-12-31',
        'status': 'pending',
    },
    {
        'project': 'Linkist',
        'description': 'Send invoice',
        'status': 'done',
    },
]
