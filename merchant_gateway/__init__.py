"""BNPL merchant gateway: installment eligibility, order creation and payment capture."""
