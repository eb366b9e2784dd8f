from django.urls import path

from . import views

urlpatterns = [
    path("bank-accounts/", views.bank_account_list, name="bank-account-list"),
    path("bank-accounts/<int:account_id>/", views.bank_account_detail, name="bank-account-detail"),
    path("transactions/", views.transaction_list, name="transaction-list"),
    path("transactions/bulk-status/", views.transaction_bulk_status, name="transaction-bulk-status"),
    path("transactions/<int:tx_id>/", views.transaction_detail, name="transaction-detail"),
    path("invoices/", views.invoice_list, name="invoice-list"),
    path("invoices/aging/", views.invoice_aging, name="invoice-aging"),
    path("invoices/<int:invoice_id>/", views.invoice_detail, name="invoice-detail"),
    path("invoices/<int:invoice_id>/issue/", views.invoice_issue, name="invoice-issue"),
    path("invoices/<int:invoice_id>/cancel/", views.invoice_cancel, name="invoice-cancel"),
    path("payments/", views.payment_list, name="payment-list"),
    path("payments/unallocated/", views.payment_unallocated, name="payment-unallocated"),
    path("payments/<int:payment_id>/", views.payment_detail, name="payment-detail"),
    path("payments/<int:payment_id>/cancel/", views.payment_cancel, name="payment-cancel"),
    path("payments/<int:payment_id>/allocate/", views.payment_allocate, name="payment-allocate"),
    path("customers/<int:party_id>/", views.customer_detail, name="customer-detail"),
    path("vendors/<int:party_id>/", views.vendor_detail, name="vendor-detail"),
]
