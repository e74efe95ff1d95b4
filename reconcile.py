"""Command line entry point: python reconcile.py --source gstr2b=gstr2b.csv --source purchaseRegister=pr.xlsx"""

from gst_reconcile.reconcile import main

if __name__ == '__main__':
    main()
